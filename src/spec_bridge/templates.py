"""Catalog of known external systems with their usual endpoints.

The catalog is built once at import time and exposed read-only; connections
created from a template get their own copies of its endpoints.
"""

from types import MappingProxyType

from loguru import logger
from pydantic import BaseModel, ConfigDict

from spec_bridge.errors import SpecValidationError
from spec_bridge.parser.base import (
    AuthenticationType,
    Connection,
    Endpoint,
    ErpType,
    Parameter,
    SchemaNode,
    _new_id,
)


class MappingTemplate(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    salesforce_object: str
    external_entity: str


class SystemTemplate(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    name: str
    erp_type: ErpType
    description: str
    auth_type: AuthenticationType
    endpoints: tuple[Endpoint, ...] = ()
    mappings: tuple[MappingTemplate, ...] = ()
    documentation_url: str | None = None


def _query(name: str, data_type: str = "integer", description: str | None = None, **kwargs) -> Parameter:
    return Parameter(name=name, location="query", type=data_type, description=description, **kwargs)


def _path(name: str, description: str | None = None) -> Parameter:
    return Parameter(name=name, location="path", required=True, description=description)


def _object(**properties: SchemaNode) -> SchemaNode:
    return SchemaNode(type="object", properties=properties)


def _string(required: bool | None = None) -> SchemaNode:
    return SchemaNode(type="string", is_required=required)


def _page(*names: str) -> list[Parameter]:
    return [_query(n) for n in names]


def _build_catalog() -> dict[str, SystemTemplate]:
    templates = [
        SystemTemplate(
            key="netsuite",
            name="NetSuite",
            erp_type="NetSuite",
            description="Oracle NetSuite ERP integration with REST/SuiteTalk APIs",
            auth_type="OAuth2",
            documentation_url="https://docs.oracle.com/en/cloud/saas/netsuite/",
            endpoints=(
                Endpoint(
                    name="Get Customers",
                    description="Retrieve customer records from NetSuite",
                    path="/services/rest/record/v1/customer",
                    parameters=[
                        _query("limit", description="Maximum records to return"),
                        _query("offset", description="Starting record offset"),
                        _query("q", "string", "Search query"),
                    ],
                    response_schema=_object(
                        items=SchemaNode(type="array", items=SchemaNode(type="object")),
                        totalResults=SchemaNode(type="integer"),
                        count=SchemaNode(type="integer"),
                    ),
                ),
                Endpoint(
                    name="Get Customer by ID",
                    description="Retrieve a specific customer record",
                    path="/services/rest/record/v1/customer/{id}",
                    parameters=[_path("id", "Customer internal ID")],
                ),
                Endpoint(
                    name="Create Customer",
                    description="Create a new customer in NetSuite",
                    path="/services/rest/record/v1/customer",
                    method="POST",
                    request_body=_object(
                        companyName=_string(True),
                        email=_string(),
                        phone=_string(),
                        subsidiary=SchemaNode(type="object"),
                    ),
                ),
                Endpoint(
                    name="Get Sales Orders",
                    description="Retrieve sales orders from NetSuite",
                    path="/services/rest/record/v1/salesOrder",
                    parameters=_page("limit", "offset"),
                ),
                Endpoint(
                    name="Get Invoices",
                    description="Retrieve invoices from NetSuite",
                    path="/services/rest/record/v1/invoice",
                    parameters=_page("limit"),
                ),
            ),
            mappings=(MappingTemplate(name="Account to Customer", salesforce_object="Account", external_entity="customer"),),
        ),
        SystemTemplate(
            key="sap",
            name="SAP",
            erp_type="SAP",
            description="SAP S/4HANA and ECC integration via OData APIs",
            auth_type="OAuth2",
            documentation_url="https://api.sap.com/",
            endpoints=(
                Endpoint(
                    name="Get Business Partners",
                    description="Retrieve business partner master data",
                    path="/sap/opu/odata/sap/API_BUSINESS_PARTNER/A_BusinessPartner",
                    parameters=[_query("$top"), _query("$skip"), _query("$filter", "string")],
                ),
                Endpoint(
                    name="Get Sales Orders",
                    description="Retrieve sales orders from SAP",
                    path="/sap/opu/odata/sap/API_SALES_ORDER_SRV/A_SalesOrder",
                    parameters=[_query("$top"), _query("$filter", "string")],
                ),
            ),
            mappings=(
                MappingTemplate(
                    name="Account to Business Partner", salesforce_object="Account", external_entity="A_BusinessPartner"
                ),
            ),
        ),
        SystemTemplate(
            key="quickbooks",
            name="QuickBooks",
            erp_type="QuickBooks",
            description="Intuit QuickBooks Online API integration",
            auth_type="OAuth2",
            documentation_url="https://developer.intuit.com/app/developer/qbo/docs/api/accounting/most-commonly-used/account",
            endpoints=(
                Endpoint(
                    name="Get Customers",
                    description="Query customers from QuickBooks",
                    path="/v3/company/{realmId}/query",
                    parameters=[
                        _path("realmId"),
                        _query("query", "string", required=True, default_value="SELECT * FROM Customer"),
                    ],
                ),
                Endpoint(
                    name="Get Invoices",
                    description="Query invoices from QuickBooks",
                    path="/v3/company/{realmId}/query",
                    parameters=[
                        _path("realmId"),
                        _query("query", "string", required=True, default_value="SELECT * FROM Invoice"),
                    ],
                ),
                Endpoint(
                    name="Create Customer",
                    description="Create a customer in QuickBooks",
                    path="/v3/company/{realmId}/customer",
                    method="POST",
                    parameters=[_path("realmId")],
                    request_body=_object(
                        DisplayName=_string(True),
                        PrimaryEmailAddr=_object(Address=_string()),
                        PrimaryPhone=_object(FreeFormNumber=_string()),
                    ),
                ),
            ),
            mappings=(MappingTemplate(name="Account to Customer", salesforce_object="Account", external_entity="Customer"),),
        ),
        SystemTemplate(
            key="xero",
            name="Xero",
            erp_type="Xero",
            description="Xero Accounting API integration",
            auth_type="OAuth2",
            documentation_url="https://developer.xero.com/documentation/api/accounting/overview",
            endpoints=(
                Endpoint(
                    name="Get Contacts",
                    description="Retrieve contacts from Xero",
                    path="/api.xro/2.0/Contacts",
                    parameters=[_query("page"), _query("where", "string")],
                ),
                Endpoint(
                    name="Get Invoices",
                    description="Retrieve invoices from Xero",
                    path="/api.xro/2.0/Invoices",
                    parameters=_page("page"),
                ),
                Endpoint(
                    name="Create Contact",
                    description="Create a contact in Xero",
                    path="/api.xro/2.0/Contacts",
                    method="POST",
                    request_body=_object(
                        Name=_string(True),
                        EmailAddress=_string(),
                        FirstName=_string(),
                        LastName=_string(),
                    ),
                ),
            ),
            mappings=(MappingTemplate(name="Account to Contact", salesforce_object="Account", external_entity="Contacts"),),
        ),
        SystemTemplate(
            key="custom",
            name="Custom API",
            erp_type="Custom",
            description="Start from an empty REST API connection",
            auth_type="None",
        ),
    ]
    return {t.key: t for t in templates}


TEMPLATES = MappingProxyType(_build_catalog())


def get_template(key: str) -> SystemTemplate:
    """Look up by key, display name or ERP type (case-insensitive)."""
    wanted = (key or "").lower()
    for template in TEMPLATES.values():
        if wanted in (template.key, template.name.lower(), template.erp_type.lower()):
            return template
    raise SpecValidationError(f"Unknown template: {key!r} (available: {', '.join(TEMPLATES)})")


def connection_from_template(key: str, base_url: str = "", name: str | None = None) -> Connection:
    """Fresh connection seeded with copies of the template's endpoints."""
    template = get_template(key)
    endpoints = [e.model_copy(deep=True, update={"id": _new_id()}) for e in template.endpoints]
    connection = Connection(
        name=name or template.name,
        description=template.description,
        base_url=base_url,
        authentication_type=template.auth_type,
        endpoints=endpoints,
        erp_type=template.erp_type,
        tags=[template.key],
    )
    logger.info("Created {} connection from template with {} endpoints", template.name, len(endpoints))
    return connection
