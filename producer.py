"""Synthetic security-event generator.

Emits already-normalized events (the shape the alerting engine consumes)
for a pool of benign users plus a few attackers, so the whole pipeline can
run locally against Kafka without real log sources.

Usage:
    python producer.py
    python producer.py --normal 20 --brute-forcers 2 --scanners 1
    python producer.py --eps 100 --topic processed-events
"""

import argparse
import json
import random
import signal
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from confluent_kafka import Producer
from confluent_kafka.admin import AdminClient, NewTopic

HOSTS = ["web-01", "web-02", "db-01", "bastion", "build-03"]
COUNTRIES = [("US", "Chicago"), ("US", "Seattle"), ("GB", "London"), ("CA", "Toronto")]
ATTACKER_COUNTRIES = [("RU", "Moscow"), ("CN", "Shanghai"), ("BR", "Sao Paulo")]
PIPELINE_VERSION = "1.0.0"

running = True


def _shutdown(sig, frame):
    global running
    print("\nShutting down generator...")
    running = False


# ---------------------------------------------------------------------------
# Actor profiles
# ---------------------------------------------------------------------------

@dataclass
class Actor:
    user: str
    ip: str
    country: str
    city: str
    role: str  # normal | brute_forcer | scanner
    events_per_min: float
    login_failure_rate: float  # fraction of auth attempts that fail


def _random_ip(private=False):
    if private:
        return f"10.0.{random.randint(0, 255)}.{random.randint(1, 254)}"
    return ".".join(str(random.randint(1, 223)) for _ in range(4))


def create_actors(n_normal, n_brute_forcers, n_scanners):
    """Build the actor pool. Each actor keeps one IP and location."""
    actors = []

    for i in range(n_normal):
        country, city = random.choice(COUNTRIES)
        actors.append(Actor(
            user=f"user{i + 1:03d}", ip=_random_ip(private=True),
            country=country, city=city, role="normal",
            events_per_min=random.uniform(5, 40), login_failure_rate=0.03,
        ))

    # --- Brute forcers: hammer one host with bad passwords ---
    for i in range(n_brute_forcers):
        country, city = random.choice(ATTACKER_COUNTRIES)
        actors.append(Actor(
            user=random.choice(["root", "admin", "oracle", "test"]), ip=_random_ip(),
            country=country, city=city, role="brute_forcer",
            events_per_min=random.uniform(60, 200), login_failure_rate=0.97,
        ))

    # --- Scanners: rapid connection attempts across ports ---
    for i in range(n_scanners):
        country, city = random.choice(ATTACKER_COUNTRIES)
        actors.append(Actor(
            user="", ip=_random_ip(),
            country=country, city=city, role="scanner",
            events_per_min=random.uniform(100, 300), login_failure_rate=0.0,
        ))

    return actors


# ---------------------------------------------------------------------------
# Event generation
# ---------------------------------------------------------------------------

def _now_iso():
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _envelope(actor, event_type, action, severity, outcome, target, metadata):
    ts = _now_iso()
    event_actor = {"ip": actor.ip, "geo": {"country": actor.country, "city": actor.city}}
    if actor.user:
        event_actor["user"] = actor.user
    return {
        "id": str(uuid.uuid4()),
        "timestamp": ts,
        "ingested_at": ts,
        "event_type": event_type,
        "event_action": action,
        "event_severity": severity,
        "event_category": [event_type],
        "source": {"type": "syslog", "name": target.get("name", "unknown")},
        "actor": event_actor,
        "target": target,
        "outcome": outcome,
        "metadata": metadata,
        "pipeline": {
            "version": PIPELINE_VERSION,
            "processed_at": ts,
            "enrichments_applied": ["geoip"],
        },
    }


def make_event(actor: Actor) -> dict:
    """Generate a single normalized event for an actor based on its profile."""
    host = random.choice(HOSTS)

    if actor.role == "scanner":
        port = random.randint(1, 65535)
        return _envelope(
            actor, "network", random.choice(["connection_attempt", "connection_refused"]),
            "low", "failure",
            {"type": "host", "name": host, "port": port},
            {"protocol": "tcp"},
        )

    roll = random.random()

    # Authentication: brute forcers almost always land here
    if actor.role == "brute_forcer" or roll < 0.4:
        failed = random.random() < actor.login_failure_rate
        return _envelope(
            actor, "authentication", "login_failure" if failed else "login_success",
            "medium" if failed else "low", "failure" if failed else "success",
            {"type": "host", "name": host, "port": 22},
            {"method": random.choice(["password", "publickey"])},
        )

    if roll < 0.7:
        path = random.choice(["/var/www/index.html", "/home/app/config.yml", "/tmp/build.log"])
        return _envelope(
            actor, "file", random.choice(["read", "modify"]), "low", "success",
            {"type": "file", "name": path},
            {"size_bytes": random.randint(100, 50_000)},
        )

    return _envelope(
        actor, "process", "process_start", "low", "success",
        {"type": "process", "name": random.choice(["python3", "nginx", "bash"])},
        {"command_line": random.choice(["python3 manage.py runserver", "nginx -s reload",
                                        "bash -c make"]),
         "pid": random.randint(300, 60_000)},
    )


# ---------------------------------------------------------------------------
# Initialization
# ---------------------------------------------------------------------------

def _ensure_topics(bootstrap_servers, topics):
    """Create Kafka topics if they don't already exist."""
    admin = AdminClient({"bootstrap.servers": bootstrap_servers})
    new_topics = [NewTopic(t, num_partitions=3, replication_factor=1) for t in topics]
    fs = admin.create_topics(new_topics)
    for topic, f in fs.items():
        try:
            f.result()
            print(f"Created topic '{topic}'")
        except Exception as e:
            if "TOPIC_ALREADY_EXISTS" in str(e):
                print(f"Topic '{topic}' already exists")
            else:
                raise


# ---------------------------------------------------------------------------
# Main loop
# ---------------------------------------------------------------------------

def main():
    parser = argparse.ArgumentParser(description="Synthetic security event generator")
    parser.add_argument("--bootstrap-servers", default="localhost:9092")
    parser.add_argument("--topic", default="processed-events")
    parser.add_argument("--normal", type=int, default=8)
    parser.add_argument("--brute-forcers", type=int, default=1)
    parser.add_argument("--scanners", type=int, default=1)
    parser.add_argument("--eps", type=float, default=50, help="Target events/sec")
    args = parser.parse_args()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    actors = create_actors(args.normal, args.brute_forcers, args.scanners)
    weights = [a.events_per_min for a in actors]

    print(f"Generating to topic '{args.topic}' at ~{args.eps} events/sec")
    print(f"Actors: {len(actors)} total")
    for a in actors:
        print(f"  {a.user or '-':<10s} {a.role:<13s} ip={a.ip:<16s} "
              f"~{a.events_per_min:>5.0f} epm  {a.country}")

    _ensure_topics(args.bootstrap_servers, [args.topic])

    producer = Producer({
        "bootstrap.servers": args.bootstrap_servers,
        "acks": "all",
        "client.id": "security-event-generator",
    })

    count = 0
    delay = 1.0 / args.eps

    while running:
        actor = random.choices(actors, weights=weights, k=1)[0]
        event = make_event(actor)

        producer.produce(
            topic=args.topic,
            key=actor.ip.encode(),
            value=json.dumps(event),
        )
        producer.poll(0)

        count += 1
        if count % 500 == 0:
            print(f"  ... {count} events produced")

        time.sleep(delay)

    producer.flush()
    print(f"Done. {count} events produced.")


if __name__ == "__main__":
    main()
