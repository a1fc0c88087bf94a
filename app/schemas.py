"""
Pydantic schemas for API response models
Operational endpoints only; proxied payloads are passed through as raw bytes
"""
from pydantic import BaseModel
from typing import Any, Dict, Optional


# ===== OPERATIONAL SCHEMAS =====

class HealthStatus(BaseModel):
    """Liveness check response"""
    status: str
    mode: str


class VersionInfo(BaseModel):
    """Service version response"""
    name: str
    version: str
    full: str


class CacheStats(BaseModel):
    """Counters for every cache the proxy owns"""
    manifest: Dict[str, Any]
    camnames: Dict[str, Any]
    rwis: Dict[str, Any]
    resolver: Dict[str, Any]
    snapshots: Dict[str, Any]


# ===== DIAGNOSTICS SCHEMAS =====

class DiagnosticsReport(BaseModel):
    """Result of probing the camera manifest upstream directly"""
    target: str
    status: Optional[int] = None
    content_type: Optional[str] = None
    body_length: Optional[int] = None
    verdict: Optional[str] = None
    body_preview: Optional[str] = None
    error: Optional[str] = None
    reason: Optional[str] = None


# ===== ERROR SCHEMAS =====

class ErrorBody(BaseModel):
    """JSON error body for 400/502 responses"""
    error: str


class UpstreamUnavailable(ErrorBody):
    """503 body for the manifest proxy; preview is withheld unless enabled"""
    preview: Optional[str] = None
