"""Apex code generator.

Renders a Connection into a service class (one method per endpoint, wrapper
inner classes for object shapes), a mock subclass with canned responses and
a test class exercising the service surface through the mock.

Everything here is computed in memory and is deterministic: the same
connection and options always yield byte-identical files.
"""

import re
from dataclasses import dataclass, field

from loguru import logger

from spec_bridge.generator.base import GeneratedFile, GenerationOptions
from spec_bridge.generator.naming import (
    APEX_RESERVED,
    MAX_IDENTIFIER_LENGTH,
    capitalize_first,
    method_name,
    sanitize_class_name,
    to_pascal_case,
    unique_name,
    variable_name,
)
from spec_bridge.parser.base import Connection, Endpoint, SchemaNode

API_VERSION = "59.0"

SERVICE_SUFFIX = "Service"
TEST_SUFFIX = "ServiceTest"
MOCK_SUFFIX = "ServiceMock"

BODY_METHODS = ("POST", "PUT", "PATCH")

EXCEPTION_CLASS = "ServiceException"
CALLOUT_CLASS = "PreparedCallout"
QUEUE_CLASS = "CalloutQueue"

# Names the generated service already uses for itself
HELPER_METHODS = {"buildRequest", "buildQueryString", "send", "handleError", "flushAsync"}
# Names the mock adds on top of the service
MOCK_HELPER_METHODS = {"failWith", "callCount", "record"}
SYSTEM_TYPES = {
    "String", "Integer", "Long", "Double", "Decimal", "Boolean", "Date", "Datetime", "Time", "Object",
    "List", "Map", "Set", "Id", "Blob", "Exception", "Type", "Schema", "System", "Test", "JSON",
    "Http", "HttpRequest", "HttpResponse", "Database", "Queueable", "QueueableContext", "EncodingUtil",
}

PRIMITIVE_TYPES = {
    "string": "String",
    "integer": "Integer",
    "number": "Double",
    "boolean": "Boolean",
    "date": "Date",
    "datetime": "Datetime",
}
PARAMETER_TYPES = dict(PRIMITIVE_TYPES, array="List<String>", object="Map<String, Object>")

SAMPLE_VALUES = {
    "String": "'sample'",
    "Integer": "1",
    "Long": "1L",
    "Double": "1.0",
    "Boolean": "true",
    "Date": "Date.newInstance(2024, 1, 1)",
    "Datetime": "Datetime.newInstanceGmt(2024, 1, 1, 0, 0, 0)",
    "Object": "new Map<String, Object>()",
    "Map<String, Object>": "new Map<String, Object>()",
}

META_XML = """<?xml version="1.0" encoding="UTF-8"?>
<ApexClass xmlns="http://soap.sforce.com/2006/04/metadata">
    <apiVersion>{api_version}</apiVersion>
    <status>Active</status>
</ApexClass>
"""


def class_base_name(connection: Connection) -> str:
    """Sanitized connection name, short enough for the longest derived class name."""
    return sanitize_class_name(connection.name, MAX_IDENTIFIER_LENGTH - len(MOCK_SUFFIX))


def credential_name(connection: Connection) -> str:
    """Named credential developer name; the service calls out through it."""
    return sanitize_class_name(connection.name)


def generate_apex_classes(
    connection: Connection,
    options: GenerationOptions | None = None,
    api_version: str = API_VERSION,
) -> list[GeneratedFile]:
    """Generate the service class plus, as requested, its test and mock classes."""
    generator = ApexClassGenerator(connection, options or GenerationOptions(), api_version)
    files = generator.generate()
    logger.info("Generated {} Apex files for {}", len(files), connection.name)
    return files


@dataclass
class ApexParam:
    name: str
    apex_type: str
    location: str  # path / query / header / body
    wire_name: str = ""


@dataclass
class ApexMethod:
    name: str
    kind: str  # call / bulk / async / flush
    params: list[ApexParam]
    return_type: str
    endpoint: Endpoint | None = None
    target: "ApexMethod | None" = None  # the call method a bulk/async variant delegates to

    @property
    def body_param(self) -> ApexParam | None:
        return next((p for p in self.params if p.location == "body"), None)

    @property
    def signature(self) -> str:
        return ", ".join(f"{p.apex_type} {p.name}" for p in self.params)

    @property
    def callout_helper(self) -> str:
        return f"{self.name}Callout"


@dataclass
class WrapperField:
    name: str
    json_name: str
    apex_type: str
    description: str | None = None
    required: bool = False


@dataclass
class Wrapper:
    name: str
    description: str | None
    fields: list[WrapperField] = field(default_factory=list)


class ApexClassGenerator:
    """Plans methods and wrapper types once, then renders every class from that plan."""

    def __init__(self, connection: Connection, options: GenerationOptions, api_version: str = API_VERSION):
        self.connection = connection
        self.options = options
        self.api_version = api_version

        self.base_name = class_base_name(connection)
        self.service_name = self.base_name + SERVICE_SUFFIX
        self.test_name = self.base_name + TEST_SUFFIX
        self.mock_name = self.base_name + MOCK_SUFFIX
        self.advanced = options.error_handling == "advanced"

        self.wrappers: list[Wrapper] = []
        self._shapes: dict[tuple, str] = {}
        self._type_names: set[str] = SYSTEM_TYPES | {
            self.service_name, EXCEPTION_CLASS, CALLOUT_CLASS, QUEUE_CLASS,
        }
        self._method_names: set[str] = HELPER_METHODS | MOCK_HELPER_METHODS
        self.methods = self._plan_methods()
        self.sample_names = {
            w.name: unique_name(("sample" + w.name)[:MAX_IDENTIFIER_LENGTH], self._method_names) for w in self.wrappers
        }

    # -- orchestration --------------------------------------------------------

    def generate(self) -> list[GeneratedFile]:
        files = [self._class_file(self.service_name, self.render_service(), "service-class")]
        if self.options.generate_mock_service:
            files.append(self._class_file(self.mock_name, self.render_mock(), "mock"))
        if self.options.generate_test_class:
            if not self.options.generate_mock_service:
                # the tests substitute the mock for the real service
                files.append(self._class_file(self.mock_name, self.render_mock(), "mock"))
            files.append(self._class_file(self.test_name, self.render_test(), "test"))

        with_meta = []
        for f in files:
            with_meta.append(f)
            with_meta.append(
                GeneratedFile(
                    file_name=f"{f.file_name}-meta.xml",
                    content=META_XML.format(api_version=self.api_version),
                    type="class-metadata",
                    path=f.path,
                )
            )
        return with_meta

    def _class_file(self, class_name: str, content: str, file_type: str) -> GeneratedFile:
        return GeneratedFile(
            file_name=f"{class_name}.cls",
            content=content,
            type=file_type,
            path=self.options.output_path,
        )

    # -- planning -------------------------------------------------------------

    def _plan_methods(self) -> list[ApexMethod]:
        taken = self._method_names
        calls = []
        for endpoint in self.connection.endpoints:
            name = unique_name(method_name(endpoint.name, self.options.naming_convention), taken)
            taken.add(name + "Callout")
            calls.append(self._plan_call(name, endpoint))

        methods: list[ApexMethod] = []
        for call in calls:
            methods.append(call)
            body = call.body_param
            if self.options.use_bulk_api and body is not None:
                others = [p for p in call.params if p is not body]
                records = ApexParam(name="records", apex_type=f"List<{body.apex_type}>", location="body")
                methods.append(
                    ApexMethod(
                        name=unique_name(self._variant(call.name, "Bulk"), taken),
                        kind="bulk",
                        params=others + [records],
                        return_type=f"List<{call.return_type}>",
                        endpoint=call.endpoint,
                        target=call,
                    )
                )
            if self.options.async_processing:
                methods.append(
                    ApexMethod(
                        name=unique_name(self._variant(call.name, "Async"), taken),
                        kind="async",
                        params=list(call.params),
                        return_type="void",
                        endpoint=call.endpoint,
                        target=call,
                    )
                )
        if self.options.async_processing:
            methods.append(ApexMethod(name="flushAsync", kind="flush", params=[], return_type="Id"))
        return methods

    @staticmethod
    def _variant(name: str, suffix: str) -> str:
        return name[: MAX_IDENTIFIER_LENGTH - len(suffix)] + suffix

    def _plan_call(self, name: str, endpoint: Endpoint) -> ApexMethod:
        type_hint = capitalize_first(name)
        used: set[str] = set()
        params = []
        for p in endpoint.parameters:
            params.append(
                ApexParam(
                    name=unique_name(variable_name(p.name), used),
                    apex_type=PARAMETER_TYPES.get(p.type, "String"),
                    location=p.location,
                    wire_name=p.name,
                )
            )
        if endpoint.method in BODY_METHODS and endpoint.request_body is not None:
            params.append(
                ApexParam(
                    name=unique_name("body", used),
                    apex_type=self.type_for(endpoint.request_body, type_hint + "Request"),
                    location="body",
                )
            )

        return_type = "Object"
        if endpoint.response_schema is not None:
            return_type = self.type_for(endpoint.response_schema, type_hint + "Response")
        return ApexMethod(name=name, kind="call", params=params, return_type=return_type, endpoint=endpoint)

    def type_for(self, node: SchemaNode | None, hint: str) -> str:
        """Apex type for a schema node, registering wrapper classes on the way."""
        if node is None or node.cyclic_ref:
            return "Object"
        if node.type == "string":
            if node.format == "date":
                return "Date"
            if node.format == "date-time":
                return "Datetime"
            return "String"
        if node.type == "integer" and node.format == "int64":
            return "Long"
        if node.type in PRIMITIVE_TYPES:
            return PRIMITIVE_TYPES[node.type]
        if node.type == "array":
            return f"List<{self.type_for(node.items, hint + 'Item')}>"
        if node.properties:
            return self._wrapper_for(node, hint)
        return "Map<String, Object>"

    def _wrapper_for(self, node: SchemaNode, hint: str) -> str:
        signature = _shape_signature(node)
        if signature in self._shapes:
            return self._shapes[signature]

        candidate = sanitize_class_name(hint)
        if candidate.lower() in APEX_RESERVED or candidate in SYSTEM_TYPES:
            candidate = candidate[: MAX_IDENTIFIER_LENGTH - 4] + "Data"
        name = unique_name(candidate, self._type_names)
        self._shapes[signature] = name

        wrapper = Wrapper(name=name, description=node.description)
        used: set[str] = set()
        for prop_name, child in (node.properties or {}).items():
            wrapper.fields.append(
                WrapperField(
                    name=unique_name(variable_name(prop_name), used),
                    json_name=prop_name,
                    apex_type=self.type_for(child, to_pascal_case(prop_name) or "Field"),
                    description=child.description,
                    required=bool(child.is_required) or prop_name in (node.required or []),
                )
            )
        self.wrappers.append(wrapper)
        return name

    def qualify(self, apex_type: str) -> str:
        """Prefix wrapper and exception names with the service class for use outside it."""
        names = [w.name for w in self.wrappers] + [EXCEPTION_CLASS]
        pattern = r"(?<![.\w])(" + "|".join(re.escape(n) for n in names) + r")\b"
        return re.sub(pattern, self.service_name + r".\1", apex_type)

    # -- service class --------------------------------------------------------

    def render_service(self) -> str:
        conn = self.connection
        retry = conn.retry_config
        lines: list[str] = []

        if self.options.include_comments:
            lines += _doc_comment(
                "",
                [
                    f"{conn.name} API client.",
                    conn.description or "",
                    f"Base URL: {conn.base_url or '(set on the named credential)'}",
                    f"Calls out through the {credential_name(conn)} named credential.",
                ],
            )
        lines.append(f"public virtual with sharing class {self.service_name} {{")
        lines.append(f"    public static final String NAMED_CREDENTIAL = 'callout:{credential_name(conn)}';")
        lines.append(f"    public static final Integer TIMEOUT_MS = {conn.timeout};")
        lines.append(f"    public static final Integer MAX_RETRIES = {retry.max_retries};")
        codes = ", ".join(str(code) for code in retry.retry_on)
        lines.append(f"    public static final Set<Integer> RETRY_STATUS_CODES = new Set<Integer>{{ {codes} }};")
        lines.append("")
        lines.append(f"    protected Map<String, String> defaultHeaders = {_map_literal(_callout_headers(conn.headers))};")
        if self.options.async_processing:
            lines.append(f"    protected List<{CALLOUT_CLASS}> queuedCallouts = new List<{CALLOUT_CLASS}>();")
        lines.append("")

        lines += self._render_exception()
        lines += self._render_callout_class()
        if self.options.async_processing:
            lines += self._render_queue_class()
        for wrapper in self.wrappers:
            lines += self._render_wrapper(wrapper)

        for method in self.methods:
            lines += self._render_service_method(method)
            if method.kind == "call":
                lines += self._render_callout_helper(method)

        lines += self._render_helpers()
        lines.append("}")
        return "\n".join(lines) + "\n"

    def _render_exception(self) -> list[str]:
        lines = [f"    public class {EXCEPTION_CLASS} extends Exception {{"]
        if self.advanced:
            lines.append("        public Integer statusCode;")
            lines.append("        public String responseBody;")
        lines.append("    }")
        lines.append("")
        return lines

    def _render_callout_class(self) -> list[str]:
        return [
            f"    public class {CALLOUT_CLASS} {{",
            "        public String method;",
            "        public String path;",
            "        public Map<String, String> queryParams;",
            "        public Map<String, String> headerParams;",
            "        public String body;",
            "",
            f"        public {CALLOUT_CLASS}(String method, String path, Map<String, String> queryParams,"
            " Map<String, String> headerParams, String body) {",
            "            this.method = method;",
            "            this.path = path;",
            "            this.queryParams = queryParams;",
            "            this.headerParams = headerParams;",
            "            this.body = body;",
            "        }",
            "    }",
            "",
        ]

    def _render_queue_class(self) -> list[str]:
        lines = []
        if self.options.include_comments:
            lines += _doc_comment("    ", ["Runs queued callouts one per job, chaining the rest so order is kept."])
        lines += [
            f"    public class {QUEUE_CLASS} implements Queueable, Database.AllowsCallouts {{",
            f"        private List<{CALLOUT_CLASS}> callouts;",
            "",
            f"        public {QUEUE_CLASS}(List<{CALLOUT_CLASS}> callouts) {{",
            "            this.callouts = callouts;",
            "        }",
            "",
            "        public void execute(QueueableContext context) {",
            f"            {self.service_name} service = new {self.service_name}();",
            "            service.send(service.buildRequest(callouts.remove(0)));",
            "            if (!callouts.isEmpty()) {",
            f"                System.enqueueJob(new {QUEUE_CLASS}(callouts));",
            "            }",
            "        }",
            "    }",
            "",
        ]
        return lines

    def _render_wrapper(self, wrapper: Wrapper) -> list[str]:
        lines = []
        if self.options.include_comments and wrapper.description:
            lines += _doc_comment("    ", [wrapper.description])
        lines.append(f"    public class {wrapper.name} {{")
        for f in wrapper.fields:
            comment = []
            if self.options.include_comments:
                if f.description:
                    comment.append(_single_line(f.description))
                if f.required:
                    comment.append("required")
            if f.name != f.json_name:
                comment.append(f"JSON: {f.json_name}")
            suffix = f" // {'; '.join(comment)}" if comment else ""
            lines.append(f"        public {f.apex_type} {f.name};{suffix}")
        lines.append("    }")
        lines.append("")
        return lines

    def _render_service_method(self, method: ApexMethod) -> list[str]:
        lines = []
        if self.options.include_comments:
            lines += self._method_doc(method)
        lines.append(f"    public virtual {method.return_type} {method.name}({method.signature}) {{")

        if method.kind == "call":
            lines.append(f"        HttpResponse response = send(buildRequest({method.callout_helper}({_args(method.params)})));")
            lines += _deserialize(method.return_type)
        elif method.kind == "bulk":
            target = method.target
            body = target.body_param
            lines.append(f"        {method.return_type} results = new {method.return_type}();")
            lines.append(f"        for ({body.apex_type} record : records) {{")
            call_args = ", ".join("record" if p is body else p.name for p in target.params)
            lines.append(f"            results.add({target.name}({call_args}));")
            lines.append("        }")
            lines.append("        return results;")
        elif method.kind == "async":
            lines.append(f"        queuedCallouts.add({method.target.callout_helper}({_args(method.params)}));")
        elif method.kind == "flush":
            lines += [
                "        if (queuedCallouts.isEmpty()) {",
                "            return null;",
                "        }",
                f"        Id jobId = System.enqueueJob(new {QUEUE_CLASS}(queuedCallouts));",
                f"        queuedCallouts = new List<{CALLOUT_CLASS}>();",
                "        return jobId;",
            ]
        lines.append("    }")
        lines.append("")
        return lines

    def _render_callout_helper(self, method: ApexMethod) -> list[str]:
        endpoint = method.endpoint
        lines = [f"    protected {CALLOUT_CLASS} {method.callout_helper}({method.signature}) {{"]
        lines.append(f"        String path = {_apex_string(endpoint.path)};")
        for p in method.params:
            if p.location == "path":
                placeholder = _apex_string("{" + p.wire_name + "}")
                value = _to_string(p.apex_type, p.name)
                lines.append(f"        path = path.replace({placeholder}, EncodingUtil.urlEncode({value}, 'UTF-8'));")

        lines.append("        Map<String, String> queryParams = new Map<String, String>();")
        lines.append(f"        Map<String, String> headerParams = {_map_literal(endpoint.headers)};")
        for p in method.params:
            if p.location not in ("query", "header"):
                continue
            target = "queryParams" if p.location == "query" else "headerParams"
            lines.append(f"        if ({p.name} != null) {{")
            lines.append(f"            {target}.put({_apex_string(p.wire_name)}, {_to_string(p.apex_type, p.name)});")
            lines.append("        }")

        body = method.body_param
        body_expr = f"{body.name} == null ? null : JSON.serialize({body.name})" if body else "null"
        lines.append(
            f"        return new {CALLOUT_CLASS}({_apex_string(endpoint.method)}, path, queryParams, headerParams, {body_expr});"
        )
        lines.append("    }")
        lines.append("")
        return lines

    def _render_helpers(self) -> list[str]:
        lines = [
            f"    protected virtual HttpRequest buildRequest({CALLOUT_CLASS} callout) {{",
            "        HttpRequest request = new HttpRequest();",
            "        request.setMethod(callout.method);",
            "        request.setEndpoint(NAMED_CREDENTIAL + callout.path + buildQueryString(callout.queryParams));",
            "        request.setTimeout(TIMEOUT_MS);",
            "        for (String name : defaultHeaders.keySet()) {",
            "            request.setHeader(name, defaultHeaders.get(name));",
            "        }",
            "        for (String name : callout.headerParams.keySet()) {",
            "            request.setHeader(name, callout.headerParams.get(name));",
            "        }",
            "        if (callout.body != null) {",
            "            request.setBody(callout.body);",
            "        }",
            "        return request;",
            "    }",
            "",
            "    protected String buildQueryString(Map<String, String> queryParams) {",
            "        List<String> pairs = new List<String>();",
            "        for (String name : queryParams.keySet()) {",
            "            pairs.add(EncodingUtil.urlEncode(name, 'UTF-8') + '=' + EncodingUtil.urlEncode(queryParams.get(name), 'UTF-8'));",
            "        }",
            "        return pairs.isEmpty() ? '' : '?' + String.join(pairs, '&');",
            "    }",
            "",
            "    protected virtual HttpResponse send(HttpRequest request) {",
            "        Http http = new Http();",
            "        Integer attempt = 0;",
        ]
        if self.advanced:
            lines += [
                "        HttpResponse response;",
                "        try {",
                "            response = http.send(request);",
                "            // Apex cannot sleep, so retries are immediate",
                "            while (RETRY_STATUS_CODES.contains(response.getStatusCode()) && attempt < MAX_RETRIES) {",
                "                attempt++;",
                "                response = http.send(request);",
                "            }",
                "        } catch (System.CalloutException e) {",
                f"            System.debug(LoggingLevel.ERROR, '{self.service_name} callout failed: ' + e.getMessage());",
                f"            throw new {EXCEPTION_CLASS}(e.getMessage(), e);",
                "        }",
            ]
        else:
            lines += [
                "        HttpResponse response = http.send(request);",
                "        // Apex cannot sleep, so retries are immediate",
                "        while (RETRY_STATUS_CODES.contains(response.getStatusCode()) && attempt < MAX_RETRIES) {",
                "            attempt++;",
                "            response = http.send(request);",
                "        }",
            ]
        lines += [
            "        if (response.getStatusCode() >= 400) {",
            "            handleError(response);",
            "        }",
            "        return response;",
            "    }",
            "",
            "    protected virtual void handleError(HttpResponse response) {",
        ]
        if self.advanced:
            lines += [
                f"        {EXCEPTION_CLASS} error = new {EXCEPTION_CLASS}('HTTP ' + response.getStatusCode() + ': ' + response.getStatus());",
                "        error.statusCode = response.getStatusCode();",
                "        error.responseBody = response.getBody();",
                f"        System.debug(LoggingLevel.ERROR, '{self.service_name} request failed: ' + error.getMessage());",
                "        throw error;",
            ]
        else:
            lines.append(
                f"        throw new {EXCEPTION_CLASS}('HTTP ' + response.getStatusCode() + ': ' + response.getStatus());"
            )
        lines.append("    }")
        return lines

    def _method_doc(self, method: ApexMethod) -> list[str]:
        endpoint = method.endpoint
        if method.kind == "flush":
            text = ["Enqueues every queued callout as one chained job, in call order."]
        elif method.kind == "async":
            text = [f"Queues {endpoint.method} {endpoint.path}; sent by flushAsync()."]
        elif method.kind == "bulk":
            text = [f"Calls {method.target.name} once per record, in order."]
        else:
            text = [endpoint.description or endpoint.name, f"{endpoint.method} {endpoint.path}"]
        for p in method.params:
            text.append(f"@param {p.name} {p.location} parameter")
        if method.return_type != "void":
            text.append(f"@return {method.return_type}")
        return _doc_comment("    ", text)

    # -- mock class -----------------------------------------------------------

    def render_mock(self) -> str:
        lines: list[str] = []
        if self.options.include_comments:
            lines += _doc_comment(
                "", [f"Canned-data stand-in for {self.service_name}; no callouts are made."]
            )
        lines += [
            "@IsTest",
            f"public class {self.mock_name} extends {self.service_name} {{",
            "    public Map<String, Integer> calls = new Map<String, Integer>();",
            "    private Integer failStatus;",
            "    private String failMessage;",
            "",
            f"    public {self.mock_name} failWith(Integer statusCode, String message) {{",
            "        failStatus = statusCode;",
            "        failMessage = message;",
            "        return this;",
            "    }",
            "",
            "    public Integer callCount(String methodName) {",
            "        return calls.containsKey(methodName) ? calls.get(methodName) : 0;",
            "    }",
            "",
            "    private void record(String methodName) {",
            "        calls.put(methodName, callCount(methodName) + 1);",
            "        if (failMessage != null) {",
            f"            {self.service_name}.{EXCEPTION_CLASS} error = new {self.service_name}.{EXCEPTION_CLASS}(failMessage);",
        ]
        if self.advanced:
            lines.append("            error.statusCode = failStatus;")
        lines += [
            "            throw error;",
            "        }",
            "    }",
            "",
        ]

        for method in self.methods:
            return_type = self.qualify(method.return_type)
            params = ", ".join(f"{self.qualify(p.apex_type)} {p.name}" for p in method.params)
            lines.append(f"    public override {return_type} {method.name}({params}) {{")
            lines.append(f"        record({_apex_string(method.name)});")
            if method.kind == "flush":
                lines.append("        return null;")
            elif method.return_type != "void":
                lines.append(f"        return {self.sample_value(return_type)};")
            lines.append("    }")
            lines.append("")

        for wrapper in self.wrappers:
            qualified = f"{self.service_name}.{wrapper.name}"
            lines.append(f"    private static {qualified} {self.sample_names[wrapper.name]}() {{")
            lines.append(f"        {qualified} value = new {qualified}();")
            for f in wrapper.fields:
                lines.append(f"        value.{f.name} = {self.sample_value(self.qualify(f.apex_type))};")
            lines.append("        return value;")
            lines.append("    }")
            lines.append("")

        if lines[-1] == "":
            lines.pop()
        lines.append("}")
        return "\n".join(lines) + "\n"

    def sample_value(self, qualified_type: str) -> str:
        """Deterministic Apex expression of the given (qualified) type."""
        if qualified_type in SAMPLE_VALUES:
            return SAMPLE_VALUES[qualified_type]
        if qualified_type.startswith("List<") and qualified_type.endswith(">"):
            inner = qualified_type[5:-1]
            return f"new {qualified_type}{{ {self.sample_value(inner)} }}"
        prefix = self.service_name + "."
        if qualified_type.startswith(prefix):
            return f"{self.sample_names[qualified_type[len(prefix):]]}()"
        return "null"

    # -- test class -----------------------------------------------------------

    def render_test(self) -> str:
        lines: list[str] = []
        if self.options.include_comments:
            lines += _doc_comment("", [f"Tests for {self.service_name}, run against {self.mock_name}."])
        lines += ["@IsTest", f"private class {self.test_name} {{"]

        for method in self.methods:
            lines += self._render_success_test(method)
            lines += self._render_failure_test(method)

        if lines[-1] == "":
            lines.pop()
        lines.append("}")
        return "\n".join(lines) + "\n"

    def _call_expr(self, method: ApexMethod) -> str:
        return f"service.{method.name}({', '.join('null' for _ in method.params)})"

    def _render_success_test(self, method: ApexMethod) -> list[str]:
        name = capitalize_first(method.name)
        lines = [
            "    @IsTest",
            f"    static void test{name}Success() {{",
            f"        {self.mock_name} mock = new {self.mock_name}();",
            f"        {self.service_name} service = mock;",
            "        Test.startTest();",
        ]
        if method.return_type == "void":
            lines.append(f"        {self._call_expr(method)};")
        else:
            lines.append(f"        {self.qualify(method.return_type)} result = {self._call_expr(method)};")
        lines.append("        Test.stopTest();")
        if method.return_type != "void" and method.kind != "flush":
            lines.append(f"        System.assertNotEquals(null, result, '{method.name} should return data');")
        lines.append(f"        System.assertEquals(1, mock.callCount({_apex_string(method.name)}));")
        lines.append("    }")
        lines.append("")
        return lines

    def _render_failure_test(self, method: ApexMethod) -> list[str]:
        name = capitalize_first(method.name)
        lines = [
            "    @IsTest",
            f"    static void test{name}Failure() {{",
            f"        {self.mock_name} mock = new {self.mock_name}().failWith(500, 'Simulated failure');",
            f"        {self.service_name} service = mock;",
            "        Boolean failed = false;",
            "        Test.startTest();",
            "        try {",
            f"            {self._call_expr(method)};",
            f"        }} catch ({self.service_name}.{EXCEPTION_CLASS} e) {{",
            "            failed = true;",
            "            System.assert(e.getMessage().contains('Simulated failure'));",
        ]
        if self.advanced:
            lines.append("            System.assertEquals(500, e.statusCode);")
        lines += [
            "        }",
            "        Test.stopTest();",
            f"        System.assert(failed, '{method.name} should surface the failure');",
            "    }",
            "",
        ]
        return lines


def _shape_signature(node: SchemaNode | None) -> tuple | None:
    """Structural identity of a shape; descriptions and examples do not count."""
    if node is None:
        return None
    if node.cyclic_ref:
        return ("cyclic", node.cyclic_ref)
    properties = tuple(sorted((name, _shape_signature(child)) for name, child in (node.properties or {}).items()))
    return (node.type, node.format, properties, _shape_signature(node.items))


def _apex_string(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("'", "\\'").replace("\n", "\\n").replace("\r", "\\r")
    return f"'{escaped}'"


def _single_line(text: str) -> str:
    return " ".join(text.split()).replace("*/", "* /")


def _doc_comment(indent: str, paragraphs: list[str]) -> list[str]:
    lines = [f"{indent}/**"]
    for text in paragraphs:
        if text:
            lines.append(f"{indent} * {_single_line(text)}")
    lines.append(f"{indent} */")
    return lines


def _map_literal(values: dict[str, str]) -> str:
    if not values:
        return "new Map<String, String>()"
    pairs = ", ".join(f"{_apex_string(k)} => {_apex_string(v)}" for k, v in values.items())
    return f"new Map<String, String>{{ {pairs} }}"


def _callout_headers(headers: dict[str, str]) -> dict[str, str]:
    """Static headers for the service; credentials come from the named credential instead."""
    return {k: v for k, v in headers.items() if k.lower() != "authorization"}


def _args(params: list[ApexParam]) -> str:
    return ", ".join(p.name for p in params)


def _to_string(apex_type: str, name: str) -> str:
    if apex_type == "String":
        return name
    if apex_type == "List<String>":
        return f"String.join({name}, ',')"
    if apex_type == "Map<String, Object>":
        return f"JSON.serialize({name})"
    if apex_type == "Datetime":
        return f"{name}.formatGmt('yyyy-MM-dd\\'T\\'HH:mm:ss\\'Z\\'')"
    return f"String.valueOf({name})"


def _deserialize(return_type: str) -> list[str]:
    if return_type == "Object":
        return ["        return String.isBlank(response.getBody()) ? null : JSON.deserializeUntyped(response.getBody());"]
    if return_type == "Map<String, Object>":
        return [
            "        if (String.isBlank(response.getBody())) {",
            "            return null;",
            "        }",
            "        return (Map<String, Object>) JSON.deserializeUntyped(response.getBody());",
        ]
    return [f"        return ({return_type}) JSON.deserialize(response.getBody(), {return_type}.class);"]
