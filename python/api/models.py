"""
Pydantic request/response schemas for the Watchlist Screening API

Request models accept the camelCase wire names (idNumber, includeAliases,
...) as well as snake_case. Response models serialize by alias, so the
JSON matches BatchScreeningResult.to_dict().

Record-level rules (name length, blocked characters, DOB format, ...)
are deliberately NOT duplicated here: the screener validates the whole
batch and reports the offending record position.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

_CAMEL = {"populate_by_name": True}


class ScreeningRecordRequest(BaseModel):
    """One identity record in a batch"""
    id: Optional[str] = Field(default=None, description="Caller's record id (positional id if omitted)")
    name: Optional[str] = Field(default=None, description="Name to screen (minimum 2 characters)")
    type: Optional[str] = Field(default=None, description="'individual' (default) or 'company'")
    dob: Optional[str] = Field(default=None, description="Date of birth: YYYY, YYYY-MM or YYYY-MM-DD")
    country: Optional[str] = Field(default=None, description="ISO country code or country name")
    id_number: Optional[str] = Field(default=None, alias="idNumber",
                                     description="Passport, national ID or registration number")
    aliases: List[str] = Field(default_factory=list, description="Other names for the party")

    model_config = _CAMEL

    @field_validator('id', mode='before')
    @classmethod
    def coerce_id(cls, v: Any) -> Optional[str]:
        """Accept numeric ids from spreadsheets"""
        if v is None:
            return v
        return str(v)


class ScreeningOptionsRequest(BaseModel):
    """Options bag; anything omitted takes the configured default"""
    threshold: Optional[float] = Field(default=None, description="Match threshold, clamped to 0-1")
    lists: Optional[List[str]] = Field(default=None, description="List codes, e.g. ['ofac', 'un']")
    include_aliases: Optional[bool] = Field(default=None, alias="includeAliases")
    check_dob: Optional[bool] = Field(default=None, alias="checkDob")
    check_country: Optional[bool] = Field(default=None, alias="checkCountry")
    allow_demo_data: bool = Field(default=False, alias="allowDemoData",
                                  description="Fall back to synthetic demo data (never in production)")
    deadline_seconds: Optional[float] = Field(default=None, alias="deadlineSeconds")

    model_config = _CAMEL

    def to_options(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class BatchScreeningRequest(BaseModel):
    """Request schema for batch screening"""
    records: List[ScreeningRecordRequest] = Field(..., description="Records to screen, in order")
    options: ScreeningOptionsRequest = Field(default_factory=ScreeningOptionsRequest)

    def to_records(self) -> List[Dict[str, Any]]:
        return [r.model_dump(by_alias=True, exclude_none=True) for r in self.records]


class NameScreeningRequest(BaseModel):
    """Request schema for a single-name quick check"""
    name: str = Field(..., description="Name to screen")
    type: str = Field(default="individual", description="'individual' or 'company'")
    options: ScreeningOptionsRequest = Field(default_factory=ScreeningOptionsRequest)


class FieldScoresResponse(BaseModel):
    """Per-field similarity; null when the field was not compared"""
    name: float
    dob: Optional[float] = None
    country: Optional[float] = None
    identifier: Optional[float] = None


class WatchlistEntryResponse(BaseModel):
    """Listed party that a record matched"""
    id: str
    list_code: str = Field(..., alias="listCode")
    name: str
    type: str
    aliases: List[str] = Field(default_factory=list)
    dob: Optional[str] = None
    countries: List[str] = Field(default_factory=list)
    identifiers: List[str] = Field(default_factory=list)
    source_timestamp: Optional[str] = Field(default=None, alias="sourceTimestamp")
    program: Optional[str] = None
    reason: Optional[str] = None

    model_config = _CAMEL


class MatchCandidateResponse(BaseModel):
    """One candidate at or above the threshold"""
    list_code: str = Field(..., alias="listCode")
    entry: WatchlistEntryResponse
    field_scores: FieldScoresResponse = Field(..., alias="fieldScores")
    composite_score: float = Field(..., ge=0, le=1, alias="compositeScore")
    matched_name: str = Field(..., alias="matchedName")
    matched_field: str = Field(..., alias="matchedField",
                               description="primary_name, alias or record_alias")
    status: str = Field(..., description="potential_match or confirmed_match")
    flags: List[str] = Field(default_factory=list)

    model_config = _CAMEL


class ScreeningResultResponse(BaseModel):
    """Outcome for one record"""
    record_id: str = Field(..., alias="recordId")
    record_name: str = Field(..., alias="recordName")
    status: str = Field(..., description="clear, potential_match or confirmed_match")
    matches: List[MatchCandidateResponse] = Field(default_factory=list)
    incomplete: bool = False
    incomplete_reason: Optional[str] = Field(default=None, alias="incompleteReason")

    model_config = _CAMEL


class BatchSummaryResponse(BaseModel):
    total: int = Field(..., ge=0)
    clear: int = Field(..., ge=0)
    potential_matches: int = Field(..., ge=0, alias="potentialMatches")
    confirmed_matches: int = Field(..., ge=0, alias="confirmedMatches")
    total_matches: int = Field(..., ge=0, alias="totalMatches")
    incomplete: int = Field(default=0, ge=0)

    model_config = _CAMEL


class BatchScreeningResponse(BaseModel):
    """Response schema for batch, single-name and bulk CSV screening"""
    results: List[ScreeningResultResponse]
    summary: BatchSummaryResponse
    is_demo_data: bool = Field(..., alias="isDemoData",
                               description="Results came from synthetic demo data")
    warning: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)
    incomplete: bool = False
    snapshot_version: Optional[str] = Field(default=None, alias="snapshotVersion")
    lists_screened: List[str] = Field(default_factory=list, alias="listsScreened")
    processing_time_ms: Optional[int] = Field(default=None, ge=0, alias="processingTimeMs")

    model_config = _CAMEL


class ListMetadataResponse(BaseModel):
    code: str
    name: str
    description: str
    type: str
    is_premium: bool = Field(..., alias="isPremium")
    entry_count: int = Field(..., ge=0, alias="entryCount")
    last_refreshed: Optional[str] = Field(default=None, alias="lastRefreshed")
    available: bool

    model_config = _CAMEL


class DataSourceStatusResponse(BaseModel):
    live: bool
    reason: Optional[str] = None


class CapabilitiesResponse(BaseModel):
    """Capability discovery: what a caller can screen against"""
    lists: List[ListMetadataResponse]
    default_threshold: float = Field(..., alias="defaultThreshold")
    max_batch_size: int = Field(..., alias="maxBatchSize")
    data_source_status: Dict[str, DataSourceStatusResponse] = Field(..., alias="dataSourceStatus")

    model_config = _CAMEL


class HealthResponse(BaseModel):
    """Response schema for health check endpoint"""
    status: str = Field(default="healthy", description="Service status")
    entries_loaded: int = Field(..., ge=0, description="Watchlist entries in the current snapshot")
    snapshot_version: Optional[str] = Field(default=None, description="Current snapshot version")
    live_lists: List[str] = Field(default_factory=list, description="List codes with live data")
    algorithm_version: str = Field(..., description="Algorithm version")
    memory_usage_mb: Optional[float] = Field(default=None, description="Current memory usage in MB")
    uptime_seconds: Optional[int] = Field(default=None, description="Server uptime in seconds")
    screening: Dict[str, Any] = Field(default_factory=dict, description="Screening statistics")
    error_message: Optional[str] = Field(default=None, description="Set when status is 'error'")


class DataReloadResponse(BaseModel):
    """Response schema for the list reload endpoint"""
    success: bool = Field(..., description="Whether at least one list is live after the reload")
    snapshot_version: str = Field(..., description="Version of the published snapshot")
    total_entries: int = Field(..., ge=0, description="Entries in the published snapshot")
    data_source_status: Dict[str, DataSourceStatusResponse] = Field(default_factory=dict)
    processing_time_ms: int = Field(..., ge=0, description="Processing time in milliseconds")


class ErrorDetail(BaseModel):
    """Detailed error information"""
    code: str = Field(..., description="Error code for programmatic handling")
    message: str = Field(..., description="Human-readable error message")
    field: Optional[str] = Field(default=None, description="Field that caused error")
    suggestion: Optional[str] = Field(default=None, description="How to fix the error")
    record_index: Optional[int] = Field(default=None, description="Position of the offending record")
    timestamp: str = Field(..., description="Error timestamp (ISO 8601)")


class ErrorResponse(BaseModel):
    """Standardized error response format"""
    error: ErrorDetail
