"""Alerting consumer — reads normalized events, runs the engine, emits alerts.

Consumes from processed-events, evaluates each event against every loaded
detection rule, calls the rules' notifiers, and publishes each alert to the
alerts topic.  One event is fully processed (rules and notifications)
before the next is polled.

Usage:
    python -m alerting.main
    python -m alerting.main --bootstrap-servers kafka-1:29092 --rules-dir /etc/alerting/rules
"""

import argparse
import json
import logging
import os
import signal
from pathlib import Path

from confluent_kafka import Consumer, Producer, KafkaError
from confluent_kafka.admin import AdminClient, NewTopic
from prometheus_client import start_http_server

from alerting.aggregator import (
    AggregationTracker,
    DEFAULT_RETENTION_SECONDS,
    DEFAULT_SWEEP_INTERVAL_SECONDS,
)
from alerting.engine import AlertEngine
from alerting.evaluator import RuleEvaluator
from alerting.log import setup_logging
from alerting.rules.loader import load_rules

log = logging.getLogger("alerting.main")

_DEFAULT_RULES_DIR = Path(__file__).resolve().parent / "rules" / "definitions"

running = True


def _shutdown(sig, frame):
    global running
    print("\nShutting down alerting consumer...")
    running = False


def _ensure_topic(bootstrap_servers, topic):
    """Create the output topic if it doesn't already exist."""
    admin = AdminClient({"bootstrap.servers": bootstrap_servers})
    fs = admin.create_topics([NewTopic(topic, num_partitions=3, replication_factor=1)])
    for t, f in fs.items():
        try:
            f.result()
            log.info("Created topic '%s'", t)
        except Exception as e:
            if "TOPIC_ALREADY_EXISTS" in str(e):
                log.info("Topic '%s' already exists", t)
            else:
                raise


def _parse_args(argv=None):
    env = os.environ.get
    parser = argparse.ArgumentParser(description="Security alerting consumer")
    parser.add_argument("--bootstrap-servers",
                        default=env("KAFKA_BOOTSTRAP_SERVERS", "localhost:9092"))
    parser.add_argument("--input-topic", default=env("PROCESSED_EVENTS_TOPIC", "processed-events"))
    parser.add_argument("--output-topic", default=env("ALERTS_TOPIC", "alerts"))
    parser.add_argument("--group-id", default="alerting-engine")
    parser.add_argument("--rules-dir", default=env("RULES_DIR", str(_DEFAULT_RULES_DIR)))
    parser.add_argument("--metrics-port", type=int, default=int(env("METRICS_PORT", "9102")),
                        help="Prometheus metrics HTTP port (0 disables)")
    parser.add_argument("--retention-seconds", type=float, default=DEFAULT_RETENTION_SECONDS,
                        help="Idle time after which aggregation buckets are evicted")
    parser.add_argument("--sweep-interval", type=float, default=DEFAULT_SWEEP_INTERVAL_SECONDS,
                        help="Seconds between eviction sweeps")
    parser.add_argument("--log-level", default=env("LOG_LEVEL", "INFO"))
    return parser.parse_args(argv)


def main(argv=None):
    args = _parse_args(argv)
    setup_logging(args.log_level)

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    rules = load_rules(args.rules_dir)
    tracker = AggregationTracker(
        retention_seconds=args.retention_seconds,
        sweep_interval_seconds=args.sweep_interval,
    )
    engine = AlertEngine(rules, evaluator=RuleEvaluator(tracker))

    if args.metrics_port:
        start_http_server(args.metrics_port)
        log.info("Prometheus metrics server started on :%d", args.metrics_port)

    _ensure_topic(args.bootstrap_servers, args.output_topic)

    consumer = Consumer({
        "bootstrap.servers": args.bootstrap_servers,
        "group.id": args.group_id,
        "auto.offset.reset": "earliest",
        "enable.auto.commit": True,
    })
    consumer.subscribe([args.input_topic])

    producer = Producer({"bootstrap.servers": args.bootstrap_servers})

    consumed = 0
    alerts_produced = 0

    print(f"Alerting consumer started  input={args.input_topic}  "
          f"output={args.output_topic}  rules={len(engine.rules)}")

    try:
        while running:
            msg = consumer.poll(1.0)
            if msg is None:
                continue
            if msg.error():
                if msg.error().code() == KafkaError._PARTITION_EOF:
                    continue
                log.error("Consumer error: %s", msg.error())
                continue

            try:
                event = json.loads(msg.value().decode("utf-8"))
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                log.warning("Dropping undecodable message at offset %s: %s",
                            msg.offset(), e)
                continue
            if not isinstance(event, dict):
                log.warning("Dropping non-object message at offset %s", msg.offset())
                continue

            consumed += 1

            alerts = engine.process(event)
            for alert in alerts:
                producer.produce(
                    args.output_topic,
                    key=alert.rule_id.encode(),
                    value=json.dumps(alert.to_dict(), default=str).encode("utf-8"),
                )
                alerts_produced += 1
                print(f"ALERT  rule={alert.rule_id:<24s} "
                      f"severity={alert.severity:<8s} {alert.message}")
            producer.poll(0)

            if consumed % 1000 == 0:
                producer.flush()

            if consumed % 500 == 0:
                print(f"  ... {consumed} events consumed, {alerts_produced} alerts produced")
    finally:
        engine.close()
        producer.flush()
        consumer.close()
        print(f"Done. {consumed} events consumed, {alerts_produced} alerts produced.")


if __name__ == "__main__":
    main()
