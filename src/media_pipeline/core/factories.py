"""Factory classes for creating configured service instances."""

from typing import TYPE_CHECKING, Any, Dict, Optional

import boto3

from ..engines import AnalysisEngine, ImageEngine, VideoEngine
from .models import EngineKind, PipelineConfig
from .observability import LogLevel, MetricsCollector, StructuredLogger, create_logger
from .protocols import (
    EngineProtocol,
    LoggerProtocol,
    RekognitionClientProtocol,
    S3ClientProtocol,
    SQSClientProtocol,
)
from .storage import S3ContentStore
from .work_queue import SQSWorkQueue
from .intake import UploadIntake
from .worker import PipelineWorker

if TYPE_CHECKING:
    from mypy_boto3_rekognition import RekognitionClient
    from mypy_boto3_s3 import S3Client
    from mypy_boto3_sqs import SQSClient


class LoggerFactory:
    """Factory for creating logger instances."""

    @staticmethod
    def create_logger(name: str, debug: bool = False) -> StructuredLogger:
        """Create a structured logger, at DEBUG level when requested."""
        return create_logger(name, LogLevel.DEBUG if debug else LogLevel.INFO)


class AWSClientFactory:
    """Factory for the boto3 clients behind the store, queue and analysis engine."""

    @staticmethod
    def _client(service_name: str, config: PipelineConfig, **kwargs: Any) -> Any:
        session = boto3.Session(region_name=config.region_name)
        if config.endpoint_url:
            kwargs.setdefault("endpoint_url", config.endpoint_url)
        return session.client(service_name, **kwargs)  # type: ignore

    @classmethod
    def create_s3_client(cls, config: PipelineConfig, **kwargs: Any) -> "S3Client":
        return cls._client("s3", config, **kwargs)

    @classmethod
    def create_sqs_client(cls, config: PipelineConfig, **kwargs: Any) -> "SQSClient":
        return cls._client("sqs", config, **kwargs)

    @classmethod
    def create_rekognition_client(
        cls, config: PipelineConfig, **kwargs: Any
    ) -> "RekognitionClient":
        # Rekognition is not emulated by local endpoints; always talk to AWS
        session = boto3.Session(region_name=config.region_name)
        return session.client("rekognition", **kwargs)  # type: ignore


class PipelineFactory:
    """Factory for assembling workers and intake from a PipelineConfig.

    Any client left as ``None`` is created from the configuration, so tests can
    pass in-memory fakes for some collaborators and let the rest default.
    """

    @staticmethod
    def create_store(
        config: PipelineConfig,
        s3_client: Optional[S3ClientProtocol] = None,
        logger: Optional[LoggerProtocol] = None,
    ) -> S3ContentStore:
        if s3_client is None:
            s3_client = AWSClientFactory.create_s3_client(config)
        return S3ContentStore(s3_client, buckets=config.buckets, logger=logger)

    @staticmethod
    def create_queue(
        config: PipelineConfig,
        sqs_client: Optional[SQSClientProtocol] = None,
        logger: Optional[LoggerProtocol] = None,
    ) -> SQSWorkQueue:
        if sqs_client is None:
            sqs_client = AWSClientFactory.create_sqs_client(config)
        return SQSWorkQueue(
            sqs_client,
            config.queue_url,
            wait_time_seconds=config.wait_time_seconds,
            visibility_timeout=config.visibility_timeout,
            max_messages=config.batch_size,
            logger=logger,
        )

    @staticmethod
    def create_engines(
        config: PipelineConfig,
        rekognition_client: Optional[RekognitionClientProtocol] = None,
        video_runner: Optional[Any] = None,
    ) -> Dict[EngineKind, EngineProtocol]:
        if rekognition_client is None:
            rekognition_client = AWSClientFactory.create_rekognition_client(config)
        return {
            EngineKind.IMAGE: ImageEngine(),
            EngineKind.VIDEO: VideoEngine(
                ffmpeg_path=config.ffmpeg_path,
                ffprobe_path=config.ffprobe_path,
                timeout=config.ffmpeg_timeout,
                temp_dir=config.temp_dir,
                runner=video_runner,
            ),
            EngineKind.ANALYSIS: AnalysisEngine(rekognition_client),
        }

    @classmethod
    def create_worker(
        cls,
        config: PipelineConfig,
        s3_client: Optional[S3ClientProtocol] = None,
        sqs_client: Optional[SQSClientProtocol] = None,
        rekognition_client: Optional[RekognitionClientProtocol] = None,
        video_runner: Optional[Any] = None,
        logger: Optional[LoggerProtocol] = None,
        metrics_collector: Optional[MetricsCollector] = None,
    ) -> PipelineWorker:
        """Create a fully configured pipeline worker."""
        if logger is None:
            logger = LoggerFactory.create_logger("media-pipeline.worker", config.debug)

        engines = cls.create_engines(config, rekognition_client, video_runner)
        video_engine = engines[EngineKind.VIDEO]
        if isinstance(video_engine, VideoEngine):
            video_engine.purge_stale_staging()

        return PipelineWorker(
            store=cls.create_store(config, s3_client, logger),
            engines=engines,
            queue=cls.create_queue(config, sqs_client, logger),
            logger=logger,
            metrics_collector=metrics_collector,
        )

    @classmethod
    def create_intake(
        cls,
        config: PipelineConfig,
        s3_client: Optional[S3ClientProtocol] = None,
        sqs_client: Optional[SQSClientProtocol] = None,
        worker: Optional[PipelineWorker] = None,
        logger: Optional[LoggerProtocol] = None,
    ) -> UploadIntake:
        if logger is None:
            logger = LoggerFactory.create_logger("media-pipeline.intake", config.debug)
        return UploadIntake(
            store=cls.create_store(config, s3_client, logger),
            queue=cls.create_queue(config, sqs_client, logger),
            image_engine=ImageEngine(),
            worker=worker,
            logger=logger,
        )
