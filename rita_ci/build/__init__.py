"""
Build side of the CI run: project tests, source packaging and the
pipeline that sequences every stage.
"""

from .suite_runner import SuiteRunner, SuiteResult
from .source_archive import SourceArchiver, ArchiveInfo, ArchiveError
from .ci_pipeline import CIPipeline, PipelineResult, PipelineProgress, StageResult, STAGES

__all__ = [
    'SuiteRunner',
    'SuiteResult',
    'SourceArchiver',
    'ArchiveInfo',
    'ArchiveError',
    'CIPipeline',
    'PipelineResult',
    'PipelineProgress',
    'StageResult',
    'STAGES'
]
