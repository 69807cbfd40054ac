"""Factory classes for creating configured service instances."""

import random
import time
from datetime import datetime
from typing import Callable, Optional

from ..processors.multithread import ThreadedBatchProcessor
from ..processors.serial import SerialBatchProcessor
from .models import EngineConfig
from .observability import LogLevel, StructuredLogger
from .protocols import BatchProcessor, LoggerProtocol
from .services import BatchOrchestrator, local_now
from .transcoder import ImageTranscoder


class LoggerFactory:
    """Factory for creating logger instances."""

    @staticmethod
    def create_logger(name: str = "photo-pipeline", level: LogLevel = LogLevel.INFO) -> LoggerProtocol:
        """Create a configured structured logger."""
        return StructuredLogger(name, level)


class ProcessorFactory:
    """Factory for the batch processing strategy named in the engine config."""

    @staticmethod
    def create_processor(config: EngineConfig, clock: Callable[[], float] = time.monotonic) -> BatchProcessor:
        if config.processor == "multithread":
            return ThreadedBatchProcessor(
                workers=config.workers,
                file_timeout=config.file_timeout,
                clock=clock,
            )
        return SerialBatchProcessor(clock=clock)


class ProcessingPipelineFactory:
    """Factory for creating the complete processing pipeline."""

    @staticmethod
    def create_pipeline(
        config: Optional[EngineConfig] = None,
        logger: Optional[LoggerProtocol] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], datetime] = local_now,
    ) -> BatchOrchestrator:
        """Create a fully configured orchestrator."""
        config = config or EngineConfig()

        if logger is None:
            logger = LoggerFactory.create_logger("photo-pipeline.orchestrator")

        transcoder = ImageTranscoder(logger=logger)
        processor = ProcessorFactory.create_processor(config, clock)

        return BatchOrchestrator(
            transcoder=transcoder,
            processor=processor,
            logger=logger,
            config=config,
            rng=rng,
            clock=clock,
            wall_clock=wall_clock,
        )
