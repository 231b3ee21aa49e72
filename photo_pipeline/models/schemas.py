from pydantic import BaseModel, Field
from typing import Optional, Dict, Any


class MigrationRequest(BaseModel):
    force: bool = Field(False, description="Re-ingest locations that already have stored photos")

    class Config:
        json_schema_extra = {
            "example": {
                "force": False
            }
        }


class StoreLocationRequest(BaseModel):
    location_id: Optional[str] = Field(None, alias="locationId", description="Location id (Google place_id)")
    force: bool = Field(False, description="Re-ingest even if the location already has stored photos")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "locationId": "ChIJN1t_tDeuEmsRUsoyG83frY4",
                "force": False
            }
        }


class TriggerAccepted(BaseModel):
    message: str
    run_type: Optional[str] = None
    location_id: Optional[str] = Field(None, serialization_alias="locationId")
    force: bool = False

    class Config:
        json_schema_extra = {
            "example": {
                "message": "Photo processing started in background",
                "locationId": "ChIJN1t_tDeuEmsRUsoyG83frY4",
                "force": False
            }
        }


class RunStatusResponse(BaseModel):
    success_count: int
    failed_count: int
    skipped_count: int
    last_update: Optional[str] = None
    last_run_type: Optional[str] = None
    info: Dict[str, Any] = Field(default_factory=dict)
