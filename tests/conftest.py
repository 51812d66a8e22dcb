"""
Shared test fixtures.
"""

import pytest

from ingestion.config import Settings
from ingestion.pipeline.orchestrator import IngestionPipeline
from ingestion.schemas.catalog import CatalogEntry
from ingestion.storage.memory import (
    InMemoryCatalog,
    InMemoryDuplicateIndex,
    InMemoryMappingStore,
    InMemoryRecordSink,
)

TENANT = "tenant-portal"


CFDI_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<cfdi:Comprobante xmlns:cfdi="http://www.sat.gob.mx/cfd/4"
    xmlns:tfd="http://www.sat.gob.mx/TimbreFiscalDigital"
    Version="4.0" Serie="A" Folio="1001" Fecha="2024-09-01T10:30:00"
    SubTotal="300.00" Moneda="MXN" Total="348.00" MetodoPago="PUE"
    CondicionesDePago="Contado">
  <cfdi:Emisor Rfc="LAC010101AB1" Nombre="Lacteos del Centro SA de CV" RegimenFiscal="601"/>
  <cfdi:Receptor Rfc="POR020202XY9" Nombre="Portal Restaurantes" UsoCFDI="G01"/>
  <cfdi:Conceptos>
    <cfdi:Concepto ClaveProdServ="50131700" NoIdentificacion="QM-500" Cantidad="2"
        ClaveUnidad="KGM" Descripcion="QUESO MANCHEGO" ValorUnitario="100.00" Importe="200.00"/>
    <cfdi:Concepto ClaveProdServ="50112000" NoIdentificacion="POL-01" Cantidad="1"
        ClaveUnidad="KGM" Descripcion="Pechuga de pollo" ValorUnitario="100.00" Importe="100.00"/>
  </cfdi:Conceptos>
  <cfdi:Impuestos TotalImpuestosTrasladados="48.00"/>
  {complemento}
</cfdi:Comprobante>
"""

TIMBRE = """<cfdi:Complemento>
    <tfd:TimbreFiscalDigital Version="1.1" UUID="{uuid}" FechaTimbrado="2024-09-01T10:31:00"/>
  </cfdi:Complemento>"""


def make_cfdi(uuid="ABC-1"):
    complemento = TIMBRE.format(uuid=uuid) if uuid else ""
    return CFDI_TEMPLATE.replace("{complemento}", complemento)


@pytest.fixture
def cfdi_xml():
    """Namespaced CFDI 4.0 with two concepts and a fiscal stamp."""
    return make_cfdi()


@pytest.fixture
def cfdi_factory():
    return make_cfdi


@pytest.fixture
def invoice_export_json():
    """Flat JSON invoice export for one line item."""
    return """{
        "uuid": "JSON-UUID-1",
        "folio": "F-77",
        "currency": "MXN",
        "total": 232.00,
        "issuer_info": {"tax_id": "ABA020202CD2", "legal_name": "Abarrotes Norte"},
        "stamp": {"date": "2024-09-02T08:00:00"},
        "items": [
            {
                "quantity": 2,
                "product": {
                    "product_key": "ACE-1",
                    "description": "Aceite de oliva",
                    "unit_key": "LTR",
                    "price": 100.00,
                    "taxes": [{"rate": 0.16}]
                }
            }
        ]
    }"""


@pytest.fixture
def sales_csv():
    return (
        "fecha,monto_total,tienda\n"
        '2024-09-01,"1,000.50",Portal Centro\n'
        "2024-09-02,850.00,Portal Centro\n"
    )


@pytest.fixture
def catalog_entries():
    return [
        CatalogEntry(id="cat-queso", code="ING-001", name="Queso Manchego", unit="KG"),
        CatalogEntry(id="cat-pollo", code="ING-002", name="Pechuga de Pollo", unit="KG"),
        CatalogEntry(id="cat-aceite", code="ING-003", name="Aceite de Oliva", unit="LT"),
        CatalogEntry(id="cat-salmon", code="ING-004", name="Salmon noruego fresco", unit="KG"),
    ]


@pytest.fixture
def test_settings():
    return Settings(PROMETHEUS_ENABLED=False)


@pytest.fixture
def stores(catalog_entries):
    """Fresh in-memory collaborators, catalog seeded for TENANT."""
    return {
        "catalog": InMemoryCatalog({TENANT: catalog_entries}),
        "mappings": InMemoryMappingStore(),
        "duplicates": InMemoryDuplicateIndex(),
        "sink": InMemoryRecordSink(),
    }


@pytest.fixture
def pipeline(stores, test_settings):
    return IngestionPipeline(settings=test_settings, **stores)


@pytest.fixture
def tenant():
    return TENANT
