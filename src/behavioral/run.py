"""
CLI for the behavioral analysis engine.

Usage:
    python -m src.behavioral.run [options]
"""

import argparse
import logging
import os
import sys

import structlog

from src.core.logger import setup_logging

from .cache import RedisProfileCache
from .consumer import EventIngestConsumer
from .database import BehavioralDatabase
from .models import BehavioralConfig
from .service import BehavioralAnalysisService

logger = structlog.get_logger(__name__)


def parse_arguments(argv=None):
    """Parse command-line arguments"""
    parser = argparse.ArgumentParser(
        description="Behavioral anomaly detection engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
        Examples:
        # Basic usage
        python -m src.behavioral.run

        # Custom configuration
        python -m src.behavioral.run \\
            --kafka-servers kafka:9092 \\
            --statistical-threshold 3.0 \\
            --redis

        # Test run for 5 minutes
        python -m src.behavioral.run --duration 300
        """,
    )

    # Kafka settings
    parser.add_argument(
        "--kafka-servers",
        default=os.getenv("KAFKA_BOOTSTRAP_SERVERS", "localhost:9092"),
        help="Kafka bootstrap servers (default: localhost:9092)",
    )
    parser.add_argument(
        "--topic",
        default=os.getenv("KAFKA_TOPIC", "behavioral-events"),
        help="Kafka topic (default: behavioral-events)",
    )
    parser.add_argument(
        "--group-id",
        default="behavioral-ingest-group",
        help="Kafka consumer group ID",
    )
    parser.add_argument(
        "--offset-reset",
        choices=["earliest", "latest"],
        default="earliest",
        help="Auto offset reset (default: earliest)",
    )

    # Detection
    parser.add_argument(
        "--statistical-threshold",
        type=float,
        default=2.5,
        help="Z-score threshold for statistical anomalies (default: 2.5)",
    )
    parser.add_argument(
        "--risk-threshold",
        type=float,
        default=7.0,
        help="Profile risk score above which a behavioral anomaly is raised (default: 7.0)",
    )
    parser.add_argument(
        "--min-data-points",
        type=int,
        default=50,
        help="Observations required before a metric baseline is frozen (default: 50)",
    )

    # Queue
    parser.add_argument(
        "--batch-size",
        type=int,
        default=50,
        help="Events per scheduled drain (default: 50)",
    )
    parser.add_argument(
        "--update-interval",
        type=float,
        default=float(os.getenv("UPDATE_INTERVAL_MINUTES", "15")),
        help="Minutes between scheduled drains (default: 15)",
    )

    # PostgreSQL settings
    parser.add_argument(
        "--postgres-host",
        default=os.getenv("POSTGRES_HOST", "localhost"),
        help="PostgreSQL host",
    )
    parser.add_argument(
        "--postgres-port",
        type=int,
        default=int(os.getenv("POSTGRES_PORT", "5432")),
        help="PostgreSQL port",
    )
    parser.add_argument(
        "--postgres-db",
        default=os.getenv("POSTGRES_DB", "behavioral_db"),
        help="PostgreSQL database",
    )
    parser.add_argument(
        "--postgres-user",
        default=os.getenv("POSTGRES_USER", "behavioral"),
        help="PostgreSQL user",
    )
    parser.add_argument(
        "--postgres-password",
        default=os.getenv("POSTGRES_PASSWORD", "behavioral_password"),
        help="PostgreSQL password",
    )

    # Redis configuration
    parser.add_argument(
        "--redis",
        action="store_true",
        default=os.getenv("REDIS_ENABLED", "").lower() in ("1", "true", "yes"),
        help="Mirror profiles to Redis",
    )
    parser.add_argument(
        "--redis-host",
        default=os.getenv("REDIS_HOST", "localhost"),
        help="Redis host (default: localhost or REDIS_HOST env var)",
    )
    parser.add_argument(
        "--redis-port",
        type=int,
        default=int(os.getenv("REDIS_PORT", "6379")),
        help="Redis port",
    )

    # Runtime settings
    parser.add_argument(
        "--duration",
        type=int,
        help="Run for N seconds then stop (default: infinite)",
    )

    # Logging
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (default: INFO)",
    )

    return parser.parse_args(argv)


def build_config(args) -> BehavioralConfig:
    """Build configuration from arguments"""
    return BehavioralConfig(
        statistical_threshold=args.statistical_threshold,
        behavioral_risk_threshold=args.risk_threshold,
        min_data_points=args.min_data_points,
        batch_size=args.batch_size,
        update_interval_minutes=args.update_interval,
        kafka_bootstrap_servers=args.kafka_servers,
        kafka_topic=args.topic,
        kafka_group_id=args.group_id,
        kafka_auto_offset_reset=args.offset_reset,
        postgres_host=args.postgres_host,
        postgres_port=args.postgres_port,
        postgres_database=args.postgres_db,
        postgres_user=args.postgres_user,
        postgres_password=args.postgres_password,
        redis_enabled=args.redis,
        redis_host=args.redis_host,
        redis_port=args.redis_port,
    )


def main(argv=None):
    """Main entry point"""
    args = parse_arguments(argv)

    log_level = getattr(logging, args.log_level)
    setup_logging(level=log_level)

    logger.info("Starting behavioral analysis engine")

    service = None
    try:
        config = build_config(args)

        db = BehavioralDatabase(config)
        if not db.check_health():
            raise RuntimeError("Database health check failed")

        cache = RedisProfileCache(config) if config.redis_enabled else None

        service = BehavioralAnalysisService(config, db, cache=cache)
        if not service.initialize():
            raise RuntimeError("Behavioral analysis initialization failed")

        consumer = EventIngestConsumer(config, service)
        if not consumer.run(duration_seconds=args.duration):
            logger.error("Engine stopped with an unrecorded event pending redelivery")
            return 1

        logger.info("Engine stopped successfully")
        return 0

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0

    except Exception as e:
        logger.error("Engine failed", error=str(e), exc_info=True)
        return 1

    finally:
        if service is not None:
            service.close()


if __name__ == "__main__":
    sys.exit(main())
