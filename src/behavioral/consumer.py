"""
Kafka ingestion adapter.

Consumes behavioral event payloads from Kafka and feeds them to
BehavioralAnalysisService.record_event.
"""

import json
import time
from typing import Any, Optional

import structlog
from kafka import KafkaConsumer

from .models import BehavioralConfig
from .service import BehavioralAnalysisService

logger = structlog.get_logger(__name__)

# Rejections that may succeed on redelivery; their offsets are never committed
RETRYABLE_ERROR_CODES = frozenset({"PersistenceFailure", "NotInitialized"})


class EventIngestConsumer:
    """Streams behavioral events from Kafka into the analysis service"""

    def __init__(self, config: BehavioralConfig, service: BehavioralAnalysisService):
        self.config = config
        self.service = service

        try:
            self.consumer = KafkaConsumer(
                config.kafka_topic,
                bootstrap_servers=config.kafka_bootstrap_servers,
                group_id=config.kafka_group_id,
                auto_offset_reset=config.kafka_auto_offset_reset,
                enable_auto_commit=config.enable_auto_commit,
                max_poll_records=config.max_poll_records,
                value_deserializer=lambda m: json.loads(m.decode("utf-8")),
            )
            logger.info(
                "Kafka consumer initialized",
                bootstrap_servers=config.kafka_bootstrap_servers,
                topic=config.kafka_topic,
                group_id=config.kafka_group_id,
            )
        except Exception as e:
            logger.error("Failed to initialize Kafka consumer", error=str(e))
            raise

        self.stats = {
            "total_consumed": 0,
            "total_recorded": 0,
            "rejected": 0,
            "parse_errors": 0,
            "retryable_failures": 0,
        }

    def run(self, duration_seconds: Optional[int] = None, stats_interval: float = 30):
        """Run the consumer

        Args:
            duration_seconds: Optional duration in seconds. If None, runs indefinitely.
            stats_interval: Seconds between stats log lines

        Returns:
            False if it stopped early on an event that must be redelivered
        """
        logger.info(
            "Starting behavioral event consumer",
            topic=self.config.kafka_topic,
            duration=duration_seconds if duration_seconds else "indefinite",
        )

        start_time = time.time()
        last_log_time = start_time
        retry_pending = False

        try:
            for message in self.consumer:
                self.stats["total_consumed"] += 1
                if not self._process_message(message.value):
                    retry_pending = True
                    logger.warning(
                        "Stopping consumer before commit, event will be redelivered",
                        partition=message.partition,
                        offset=message.offset,
                    )
                    break

                if not self.config.enable_auto_commit:
                    self.consumer.commit()

                elapsed = time.time() - start_time
                if time.time() - last_log_time >= stats_interval:
                    rate = self.stats["total_consumed"] / elapsed if elapsed > 0 else 0
                    logger.info(
                        "Consumer stats",
                        **self.stats,
                        queue_size=self.service.queue_size(),
                        rate_per_sec=round(rate, 1),
                        elapsed_sec=round(elapsed, 1),
                    )
                    last_log_time = time.time()

                if duration_seconds and elapsed >= duration_seconds:
                    logger.info("Duration limit reached", duration_seconds=duration_seconds)
                    break

        except KeyboardInterrupt:
            logger.info("Received interrupt signal, stopping consumer")

        except Exception as e:
            logger.error("Consumer error", error=str(e), exc_info=True)
            raise

        finally:
            self.consumer.close(autocommit=not retry_pending)

            elapsed = time.time() - start_time
            rate = self.stats["total_consumed"] / elapsed if elapsed > 0 else 0
            logger.info(
                "Consumer stopped",
                total_consumed=self.stats["total_consumed"],
                total_recorded=self.stats["total_recorded"],
                rejected=self.stats["rejected"],
                elapsed_sec=round(elapsed, 1),
                avg_rate_per_sec=round(rate, 1),
            )

        return not retry_pending

    def _process_message(self, message: Any) -> bool:
        """Hand one Kafka message to the service

        Returns:
            False when the event hit a transient failure and must not be committed
        """
        if not isinstance(message, dict):
            logger.warning("Skipping non-object message", message=message)
            self.stats["parse_errors"] += 1
            return True

        result = self.service.record_event(message)
        if result["success"]:
            self.stats["total_recorded"] += 1
            return True

        if result["error_code"] in RETRYABLE_ERROR_CODES:
            self.stats["retryable_failures"] += 1
            logger.error(
                "Event not recorded",
                error=result["error"],
                error_code=result["error_code"],
                entity_id=message.get("entity_id"),
            )
            return False

        self.stats["rejected"] += 1
        logger.warning(
            "Event rejected",
            error=result["error"],
            error_code=result["error_code"],
            entity_id=message.get("entity_id"),
        )
        return True
