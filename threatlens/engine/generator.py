"""Synthetic security event generator.

Every randomized field is drawn from the generator's own ``random.Random``
and timestamps come from an injectable clock, so a fixed seed and clock
reproduce the same events.
"""

from __future__ import annotations

import random
import re
import string
from datetime import datetime, timedelta, timezone
from typing import Callable

from threatlens.models import EventCategory, EventCreate, Severity

MALICIOUS_IPS = [
    "192.168.1.100", "10.0.0.50", "172.16.0.25", "203.0.113.5",
    "198.51.100.10", "192.0.2.15", "185.199.108.153", "140.82.112.4",
]

INTERNAL_IPS = [
    "192.168.1.10", "192.168.1.20", "10.0.0.5", "172.16.0.10",
    "192.168.0.100", "10.1.1.50", "172.31.0.25",
]

USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36",
    "curl/7.68.0",
    "python-requests/2.25.1",
    "Wget/1.20.3",
    "Nikto/2.1.6",
]

MALWARE_NAMES = [
    "Trojan.GenKryptik", "Win32.Conficker", "Backdoor.Poison", "Ransomware.Crypto",
    "Worm.Mydoom", "Spyware.Agent", "Rootkit.ZeroAccess", "Adware.Generic",
]

ATTACK_VECTORS = [
    "SQL Injection", "Cross-Site Scripting", "Buffer Overflow", "Privilege Escalation",
    "Man-in-the-Middle", "Phishing", "Social Engineering", "Zero-Day Exploit",
]

COUNTRIES = [
    "Russia", "China", "North Korea", "Iran", "Romania", "Brazil",
    "Nigeria", "India", "Vietnam", "Pakistan",
]

PHISHING_SUBJECTS = [
    "Urgent: Your Account Will Be Suspended",
    "Invoice #12345 - Payment Required",
    "Security Alert: Suspicious Activity Detected",
    "Your Package Could Not Be Delivered",
    "Important: Update Your Banking Information",
    "COVID-19 Relief Fund - Claim Your Money",
]

EMAIL_NAMES = ["john", "admin", "support", "security", "noreply", "urgent"]
EMAIL_DOMAINS = ["gmail.com", "yahoo.com", "hotmail.com", "fake-bank.com", "temp-mail.org"]

DOS_CRITICAL_RPS = 5000


def intrusion_severity(attempts: int) -> Severity:
    if attempts > 30:
        return Severity.CRITICAL
    if attempts > 15:
        return Severity.HIGH
    if attempts > 5:
        return Severity.MEDIUM
    return Severity.LOW


def dos_severity(requests_per_second: int) -> Severity:
    return Severity.CRITICAL if requests_per_second > DOS_CRITICAL_RPS else Severity.HIGH


def network_anomaly_severity(bytes_transferred: int) -> Severity:
    if bytes_transferred > 500_000:
        return Severity.HIGH
    if bytes_transferred > 100_000:
        return Severity.MEDIUM
    return Severity.LOW


def _slug(text: str) -> str:
    return re.sub(r"[^a-z0-9]", "_", text.lower())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EventGenerator:
    """Builds internally consistent, unenriched events for each category."""

    def __init__(
        self,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._rng = rng or random.Random()
        self._clock = clock or _utcnow
        self._builders: dict[EventCategory, Callable[[], EventCreate]] = {
            EventCategory.INTRUSION: self.intrusion,
            EventCategory.MALWARE: self.malware,
            EventCategory.NETWORK_ANOMALY: self.network_anomaly,
            EventCategory.DATA_BREACH: self.data_breach,
            EventCategory.PHISHING: self.phishing,
            EventCategory.DOS_ATTACK: self.dos_attack,
        }

    # ── public API ──────────────────────────────────────

    def generate(self, category: EventCategory | str | None = None) -> EventCreate:
        if category is None:
            category = self._rng.choice(list(EventCategory))
        return self._builders[EventCategory(category)]()

    def generate_batch(
        self,
        count: int,
        spread: timedelta | None = None,
    ) -> list[EventCreate]:
        """Generate ``count`` random events, optionally back-dated within ``spread``."""
        events = [self.generate() for _ in range(count)]
        if spread is not None:
            now = self._clock()
            for event in events:
                offset = self._rng.uniform(0, spread.total_seconds())
                event.timestamp = now - timedelta(seconds=offset)
        return events

    # ── category builders ───────────────────────────────

    def intrusion(self, attempts: int | None = None) -> EventCreate:
        source_ip = self._pick(MALICIOUS_IPS)
        target_ip = self._pick(INTERNAL_IPS)
        user_agent = self._pick(USER_AGENTS)
        attack_vector = self._pick(ATTACK_VECTORS)
        if attempts is None:
            attempts = self._rng.randint(1, 50)

        return EventCreate(
            timestamp=self._clock(),
            category=EventCategory.INTRUSION,
            severity=intrusion_severity(attempts),
            source_ip=source_ip,
            destination_ip=target_ip,
            description=(
                f"{attempts} failed authentication attempts detected from {source_ip} "
                f"targeting {target_ip} using {attack_vector}"
            ),
            raw_data={
                "attempts": attempts,
                "user_agent": user_agent,
                "attack_vector": attack_vector,
                "protocol": self._pick(["SSH", "HTTP", "FTP"]),
                "duration_seconds": self._rng.randint(10, 309),
                "payload_size": self._rng.randint(100, 10099),
                "geographic_origin": self._pick(COUNTRIES),
                "request_headers": {
                    "User-Agent": user_agent,
                    "X-Forwarded-For": source_ip,
                    "Accept": "text/html,application/xhtml+xml",
                },
            },
            tags=["brute_force", "authentication_failure", _slug(attack_vector)],
        )

    def malware(self) -> EventCreate:
        malware = self._pick(MALWARE_NAMES)
        source_ip = self._pick(INTERNAL_IPS)
        severity = self._pick([Severity.CRITICAL, Severity.HIGH])
        now = self._clock()

        return EventCreate(
            timestamp=now,
            category=EventCategory.MALWARE,
            severity=severity,
            source_ip=source_ip,
            description=f"Malware detected: {malware} found on system {source_ip}",
            raw_data={
                "malware_name": malware,
                "file_path": f"/tmp/{_slug(malware)}.exe",
                "file_hash": self._hash(),
                "process_id": self._rng.randint(1000, 10999),
                "parent_process": "explorer.exe",
                "network_connections": [
                    {"remote_ip": self._pick(MALICIOUS_IPS), "port": 443, "protocol": "HTTPS"}
                ],
                "file_size": self._rng.randint(100_000, 5_099_999),
                "creation_time": (
                    now - timedelta(seconds=self._rng.uniform(0, 86400))
                ).isoformat(),
                "detection_engine": "Real-time Protection",
                "threat_level": severity.value,
            },
            tags=["malware", "file_infection", malware.split(".")[0].lower()],
        )

    def network_anomaly(self, bytes_transferred: int | None = None) -> EventCreate:
        source_ip = self._pick(INTERNAL_IPS)
        dest_ip = self._pick(MALICIOUS_IPS)
        if bytes_transferred is None:
            bytes_transferred = self._rng.randint(10_000, 1_009_999)

        return EventCreate(
            timestamp=self._clock(),
            category=EventCategory.NETWORK_ANOMALY,
            severity=network_anomaly_severity(bytes_transferred),
            source_ip=source_ip,
            destination_ip=dest_ip,
            description=(
                f"Abnormal data transfer detected: {bytes_transferred / 1024 / 1024:.2f}MB "
                f"transferred from {source_ip} to {dest_ip}"
            ),
            raw_data={
                "bytes_transferred": bytes_transferred,
                "duration_minutes": self._rng.randint(1, 60),
                "protocol": "HTTPS",
                "port": 443,
                "session_count": self._rng.randint(1, 20),
                "packet_count": bytes_transferred // 1500,
                "flags": ["SYN", "ACK", "PSH", "FIN"],
                "geographic_destination": self._pick(COUNTRIES),
                "encryption_type": "TLS 1.3",
                "bandwidth_utilization": self._rng.randint(1, 100),
            },
            tags=["data_exfiltration", "network_anomaly", "high_volume"],
        )

    def data_breach(self) -> EventCreate:
        source_ip = self._pick(MALICIOUS_IPS)
        record_count = self._rng.randint(100, 10099)

        return EventCreate(
            timestamp=self._clock(),
            category=EventCategory.DATA_BREACH,
            severity=Severity.CRITICAL,
            source_ip=source_ip,
            description=(
                f"Potential data breach detected: {record_count} sensitive records "
                f"accessed by unauthorized user from {source_ip}"
            ),
            raw_data={
                "records_accessed": record_count,
                "data_types": ["PII", "Financial", "Healthcare", "Credentials"],
                "database_accessed": "customer_db",
                "query_type": "SELECT",
                "user_account": "admin_temp",
                "access_method": "SQL Injection",
                "tables_affected": ["users", "payments", "personal_info"],
                "time_to_detection": self._rng.randint(30, 329),
                "data_classification": "Highly Sensitive",
            },
            tags=["data_breach", "sql_injection", "pii_exposure", "critical_incident"],
        )

    def phishing(self) -> EventCreate:
        target_ip = self._pick(INTERNAL_IPS)
        severity = self._pick([Severity.MEDIUM, Severity.HIGH])
        token = "".join(self._rng.choices(string.ascii_lowercase + string.digits, k=8))

        return EventCreate(
            timestamp=self._clock(),
            category=EventCategory.PHISHING,
            severity=severity,
            source_ip=target_ip,
            description=f"Phishing attempt detected: Malicious email clicked by user at {target_ip}",
            raw_data={
                "email_subject": self._pick(PHISHING_SUBJECTS),
                "sender_email": self._fake_email(),
                "recipient_count": self._rng.randint(1, 50),
                "attachment_hash": self._hash(),
                "malicious_url": f"https://fake-{token}.com/login",
                "click_timestamp": self._clock().isoformat(),
                "user_agent": self._pick(USER_AGENTS),
                "email_headers": {
                    "Return-Path": self._fake_email(),
                    "X-Originating-IP": self._pick(MALICIOUS_IPS),
                },
            },
            tags=["phishing", "social_engineering", "email_threat"],
        )

    def dos_attack(self, requests_per_second: int | None = None) -> EventCreate:
        source_ip = self._pick(MALICIOUS_IPS)
        target_ip = self._pick(INTERNAL_IPS)
        if requests_per_second is None:
            requests_per_second = self._rng.randint(1000, 10999)

        return EventCreate(
            timestamp=self._clock(),
            category=EventCategory.DOS_ATTACK,
            severity=dos_severity(requests_per_second),
            source_ip=source_ip,
            destination_ip=target_ip,
            description=(
                f"DDoS attack detected: {requests_per_second} requests per second "
                f"from {source_ip} targeting {target_ip}"
            ),
            raw_data={
                "requests_per_second": requests_per_second,
                "attack_duration": self._rng.randint(60, 659),
                "attack_type": self._pick(["HTTP Flood", "SYN Flood", "UDP Flood"]),
                "bot_count": self._rng.randint(10, 1009),
                "target_service": self._pick(["HTTP", "HTTPS", "DNS"]),
                "peak_bandwidth": self._rng.randint(100, 1099),
                "geographic_sources": [self._pick(COUNTRIES) for _ in range(3)],
            },
            tags=["ddos", "dos_attack", "service_disruption"],
        )

    # ── helpers ─────────────────────────────────────────

    def _pick(self, options: list):
        return self._rng.choice(options)

    def _hash(self) -> str:
        return f"{self._rng.getrandbits(256):064x}"

    def _fake_email(self) -> str:
        return f"{self._pick(EMAIL_NAMES)}{self._rng.randint(0, 999)}@{self._pick(EMAIL_DOMAINS)}"
