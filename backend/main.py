import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

# Import substitution module
sys.path.insert(0, str(Path(__file__).parent.parent))
from substitution_module import (  # noqa: E402
    CatalogLoadError,
    Drug,
    DrugNotFound,
    InvalidInput,
    find_substitutes_for,
    get_drug_by_id,
    get_substitutes,
    list_drugs,
    list_rules,
    reload_database,
    search_catalog,
)
from substitution_module.config import load_settings  # noqa: E402

settings = load_settings()
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("pharmacy")

print(f"[Pharmacy] Catalog: {settings.catalog_path}")
print(f"[Pharmacy] Substitution rules: {settings.rules_path}")


class DrugListResponse(BaseModel):
    drugs: List[Dict[str, Any]]
    count: int


class RuleListResponse(BaseModel):
    rules: List[Dict[str, Any]]
    count: int


class SubstituteRequest(BaseModel):
    target: Drug = Field(..., description="Drug to find substitutes for (need not be in the catalog)")
    available_only: bool = Field(True, description="Skip candidates that are out of stock")


class SubstitutionResponse(BaseModel):
    status: str
    target: Dict[str, Any]
    suggestions: List[Dict[str, Any]]
    count: int
    message: Optional[str] = None


def _drug_list(drugs: List[Drug]) -> DrugListResponse:
    return DrugListResponse(drugs=[d.model_dump(by_alias=True) for d in drugs], count=len(drugs))


app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,  # Must be False when allow_origins=["*"]
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root() -> Dict[str, str]:
    return {
        "service": "Pharmacy Substitution Backend",
        "status": "ok",
        "docs": "/docs",
        "substitutes": "GET /drugs/{drug_id}/substitutes?available_only=true",
    }


@app.get("/health")
async def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/drugs", response_model=DrugListResponse)
async def get_drugs() -> DrugListResponse:
    """
    List all drugs in the pharmacy catalog.
    """
    return _drug_list(list_drugs())


@app.get("/drugs/search", response_model=DrugListResponse)
async def search_drugs(
    q: str = "",
    category: Optional[str] = None,
    stock_status: Optional[str] = None,
    manufacturer: Optional[str] = None,
    requires_prescription: Optional[bool] = None,
    is_controlled: Optional[bool] = None,
) -> DrugListResponse:
    """
    Search drugs by name, generic/brand name, molecule, manufacturer or category,
    optionally narrowed by category, stock status, manufacturer and flags.
    """
    return _drug_list(search_catalog(
        q,
        category=category,
        stock_status=stock_status,
        manufacturer=manufacturer,
        requires_prescription=requires_prescription,
        is_controlled=is_controlled,
    ))


@app.get("/drugs/{drug_id}", response_model=Dict[str, Any])
async def get_drug(drug_id: str) -> Dict[str, Any]:
    drug = get_drug_by_id(drug_id)
    if drug is None:
        raise HTTPException(status_code=404, detail="Drug not found")
    return drug.model_dump(by_alias=True)


@app.get("/drugs/{drug_id}/substitutes", response_model=SubstitutionResponse)
async def drug_substitutes(drug_id: str, available_only: bool = True) -> SubstitutionResponse:
    """
    Ranked substitutes for a catalog drug.
    """
    try:
        result = get_substitutes(drug_id, available_only=available_only)
    except DrugNotFound:
        raise HTTPException(status_code=404, detail="Drug not found")

    logger.info("Substitutes for %s: %d suggestion(s)", drug_id, result["count"])
    return SubstitutionResponse(**result)


@app.post("/substitutes", response_model=SubstitutionResponse)
async def substitutes_for_target(req: SubstituteRequest) -> SubstitutionResponse:
    """
    Ranked substitutes for an ad-hoc target drug.
    """
    try:
        result = find_substitutes_for(req.target, available_only=req.available_only)
    except InvalidInput as e:
        raise HTTPException(status_code=400, detail=str(e))
    return SubstitutionResponse(**result)


@app.get("/rules", response_model=RuleListResponse)
async def get_rules(active_only: bool = False) -> RuleListResponse:
    rules = list_rules(active_only=active_only)
    return RuleListResponse(rules=[r.model_dump(by_alias=True) for r in rules], count=len(rules))


@app.post("/reload")
async def reload_data() -> Dict[str, Any]:
    """
    Re-read the catalog and substitution rules from disk.
    """
    try:
        reload_database()
    except CatalogLoadError as e:
        logger.error("Reload failed: %s", e)
        raise HTTPException(status_code=500, detail=str(e))
    return {"status": "reloaded", "drugs": len(list_drugs()), "rules": len(list_rules())}


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
