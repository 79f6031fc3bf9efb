"""Font requirement detection, resolution and PDF conversion orchestration."""

from .cache import LRUCache
from .config import AppConfig, load_config
from .detection import DetectionResult, FontDetector
from .errors import ErrorKind, PipelineError
from .models import ConversionConfig, CustomFontRecord, FontCollection, FontRequirement
from .orchestrator import ConversionJob, ConversionOrchestrator, JobStage, ProgressEvent
from .remote import RemoteFontResolver
from .retry import RetryConfig, RetryPolicy
from .service import FontPipeline, build_pipeline
from .store import CustomFontStore

__all__ = [
    "AppConfig",
    "ConversionConfig",
    "ConversionJob",
    "ConversionOrchestrator",
    "CustomFontRecord",
    "CustomFontStore",
    "DetectionResult",
    "ErrorKind",
    "FontCollection",
    "FontDetector",
    "FontPipeline",
    "FontRequirement",
    "JobStage",
    "LRUCache",
    "PipelineError",
    "ProgressEvent",
    "RemoteFontResolver",
    "RetryConfig",
    "RetryPolicy",
    "build_pipeline",
    "load_config",
]
