"""Static catalogue of the IPD/IMGT databases reachable through EBI dbfetch."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

DBFETCH_URL = "https://www.ebi.ac.uk/Tools/dbfetch/dbfetch?db={db};id={identifier};style=raw"


class DatabaseEndpoint(BaseModel):
    """Endpoint and identifier prefix for one database code."""

    model_config = ConfigDict(frozen=True)

    code: str
    db_name: str
    prefix: str
    description: str = ""

    def url_for(self, identifier: str) -> str:
        return DBFETCH_URL.format(db=self.db_name, identifier=identifier)


_CATALOGUE: dict[str, DatabaseEndpoint] = {
    endpoint.code: endpoint
    for endpoint in (
        DatabaseEndpoint(
            code="MHC", db_name="ipdmhc", prefix="NHP", description="IPD-MHC non-human primate alleles"
        ),
        DatabaseEndpoint(
            code="KIR", db_name="ipdnhkir", prefix="NHP", description="IPD-NHKIR non-human primate KIR alleles"
        ),
        DatabaseEndpoint(
            code="HLA", db_name="imgthla", prefix="HLA", description="IPD-IMGT/HLA human alleles"
        ),
        DatabaseEndpoint(
            code="MHCPRO", db_name="ipdmhcpro", prefix="NHP", description="IPD-MHC protein sequences"
        ),
        DatabaseEndpoint(
            code="KIRPRO", db_name="ipdnhkirpro", prefix="NHP", description="IPD-NHKIR protein sequences"
        ),
    )
}


def lookup_database(code: str) -> DatabaseEndpoint | None:
    """Return the endpoint for ``code`` or ``None`` when it is not supported."""

    return _CATALOGUE.get(code)


def supported_codes() -> list[str]:
    return list(_CATALOGUE)


__all__ = ["DBFETCH_URL", "DatabaseEndpoint", "lookup_database", "supported_codes"]
