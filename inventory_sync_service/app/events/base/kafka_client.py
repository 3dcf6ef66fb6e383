import asyncio
import json
import uuid
from typing import Optional

from aiokafka import AIOKafkaConsumer, AIOKafkaProducer  # type: ignore
from aiokafka.errors import KafkaConnectionError, KafkaError  # type: ignore

from ...core.errors import DistributionChannelError
from ...core.setting import get_settings
from ...utils.logging import setup_inventory_logging as setup_logging
from ..schemas import ChangeEvent
from . import DistributionChannel, WireListener

logger = setup_logging(
    "inventory_sync_service.events.kafka", log_level=get_settings().LOG_LEVEL
)


class KafkaDistributionChannel(DistributionChannel):
    """
    Publishes change events to the shared inventory topic.

    There is no degraded mode: when the producer is not connected or the
    broker rejects a send, ``publish`` raises ``DistributionChannelError``.
    """

    name = "kafka"

    def __init__(
        self,
        bootstrap_servers: str,
        client_id: str,
        topic: str,
        max_retries: int = 20,
        retry_delay: float = 2.0,
        connect_timeout: float = 30.0,
    ):
        self.bootstrap_servers = bootstrap_servers
        self.client_id = client_id
        self.topic = topic
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.connect_timeout = connect_timeout
        self.producer: Optional[AIOKafkaProducer] = None
        self.is_connected = False
        self._connection_lock = asyncio.Lock()

    async def start(self) -> None:
        """Start Kafka producer with retry logic"""
        async with self._connection_lock:
            if self.producer and self.is_connected:
                return

            self.producer = AIOKafkaProducer(
                bootstrap_servers=self.bootstrap_servers,
                client_id=self.client_id,
                value_serializer=lambda x: json.dumps(x, default=str).encode("utf-8"),  # type: ignore
                key_serializer=lambda x: x.encode("utf-8") if x else None,  # type: ignore
                acks="all",
                retry_backoff_ms=1000,
                request_timeout_ms=30000,
            )

            for attempt in range(self.max_retries):
                try:
                    logger.info(
                        "Attempting Kafka connection",
                        extra={
                            "attempt": attempt + 1,
                            "max_retries": self.max_retries,
                            "topic": self.topic,
                            "operation": "kafka_connect",
                        },
                    )
                    await asyncio.wait_for(
                        self.producer.start(), timeout=self.connect_timeout
                    )  # type: ignore
                    self.is_connected = True
                    logger.info(
                        "Connected to Kafka",
                        extra={"topic": self.topic, "operation": "kafka_connected"},
                    )
                    return

                except (KafkaConnectionError, asyncio.TimeoutError) as e:
                    delay = self.retry_delay * (2**attempt)
                    logger.warning(
                        f"Kafka connection attempt {attempt + 1} failed: {e}. "
                        f"Retrying in {delay} seconds..."
                    )
                    if attempt < self.max_retries - 1:
                        await asyncio.sleep(delay)

            self.is_connected = False
            logger.error(
                f"Failed to connect to Kafka after {self.max_retries} attempts. "
                f"Publishing will fail until the broker is reachable",
                extra={"operation": "kafka_connect_failed"},
            )

    async def stop(self) -> None:
        """Stop Kafka producer"""
        async with self._connection_lock:
            if self.producer:
                try:
                    await self.producer.stop()  # type: ignore
                    logger.info("Kafka producer stopped")
                except Exception as e:
                    logger.warning(
                        "Error stopping Kafka producer",
                        extra={"error": str(e), "operation": "stop_producer"},
                    )
                finally:
                    self.producer = None
                    self.is_connected = False

    async def publish(self, event: ChangeEvent) -> None:
        if not self.is_connected or not self.producer:
            raise DistributionChannelError(
                "Kafka producer not connected",
                details={"event_id": event.event_id, "topic": self.topic},
            )

        try:
            # Keyed by product so one entity's events share a partition
            await self.producer.send_and_wait(  # type: ignore
                topic=self.topic,
                value=event.to_wire(),
                key=event.product_id,
            )
        except KafkaError as e:
            logger.error(
                "Failed to publish event to Kafka",
                extra={
                    "event_id": event.event_id,
                    "event_type": event.event_type.value,
                    "topic": self.topic,
                    "error": str(e),
                    "operation": "publish_event_failed",
                },
            )
            raise DistributionChannelError(
                f"Kafka rejected event {event.event_id}",
                details={"event_id": event.event_id, "topic": self.topic},
            ) from e

        logger.debug(
            "Published event to Kafka topic",
            extra={
                "event_id": event.event_id,
                "event_type": event.event_type.value,
                "topic": self.topic,
                "operation": "publish_event",
            },
        )

    async def health_check(self) -> bool:
        """Check if Kafka connection is healthy"""
        try:
            if not self.producer or not self.is_connected:
                return False

            metadata = await self.producer.client.fetch_all_metadata()  # type: ignore
            return len(metadata.brokers()) > 0  # type: ignore

        except Exception as e:
            logger.warning(
                "Kafka health check failed",
                extra={"error": str(e), "operation": "health_check"},
            )
            return False


class KafkaChannelConsumer:
    """
    Reads the inventory topic and hands each payload to a listener.

    Every process needs to see every event, so each instance joins its own
    consumer group and starts from the latest offset.
    """

    def __init__(
        self,
        bootstrap_servers: str,
        group_id: str,
        client_id: str,
        topic: str,
        listener: WireListener,
        connect_timeout: float = 30.0,
    ):
        self.bootstrap_servers = bootstrap_servers
        self.group_id = f"{group_id}-{uuid.uuid4().hex[:8]}"
        self.client_id = client_id
        self.topic = topic
        self.listener = listener
        self.connect_timeout = connect_timeout
        self.consumer: Optional[AIOKafkaConsumer] = None
        self.running = False
        self._task: Optional["asyncio.Task[None]"] = None

    async def start(self) -> None:
        self.consumer = AIOKafkaConsumer(
            self.topic,
            bootstrap_servers=self.bootstrap_servers,
            group_id=self.group_id,
            client_id=self.client_id,
            value_deserializer=lambda x: json.loads(x.decode("utf-8")),  # type: ignore
            enable_auto_commit=True,
            auto_offset_reset="latest",
        )
        try:
            await asyncio.wait_for(self.consumer.start(), timeout=self.connect_timeout)  # type: ignore
        except (KafkaConnectionError, asyncio.TimeoutError) as e:
            logger.error(
                "Failed to start Kafka consumer; remote events will not be received",
                extra={
                    "topic": self.topic,
                    "group_id": self.group_id,
                    "error": str(e),
                    "operation": "consumer_start_failed",
                },
            )
            self.consumer = None
            return

        self.running = True
        self._task = asyncio.create_task(self._consume_messages())
        logger.info(
            "Subscribed to Kafka topic",
            extra={
                "topic": self.topic,
                "group_id": self.group_id,
                "operation": "subscribe",
            },
        )

    async def stop(self) -> None:
        self.running = False
        if self._task:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None
        if self.consumer:
            try:
                await self.consumer.stop()  # type: ignore
                logger.info(
                    "Stopped Kafka consumer",
                    extra={"topic": self.topic, "operation": "stop_consumer"},
                )
            except Exception as e:
                logger.warning(
                    "Error stopping Kafka consumer",
                    extra={
                        "topic": self.topic,
                        "error": str(e),
                        "operation": "stop_consumer_error",
                    },
                )
            finally:
                self.consumer = None

    async def _consume_messages(self) -> None:
        """Consume messages with per-message error handling"""
        try:
            async for message in self.consumer:  # type: ignore
                if not self.running:
                    break
                try:
                    await self.listener(message.value)  # type: ignore
                except Exception as e:
                    logger.error(
                        "Error processing Kafka message",
                        extra={
                            "topic": self.topic,
                            "offset": message.offset,  # type: ignore
                            "error": str(e),
                            "operation": "process_message_error",
                        },
                    )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(
                "Kafka consumer error",
                extra={"topic": self.topic, "error": str(e), "operation": "consumer_error"},
            )
