#!/usr/bin/env python3
"""Development scripts for the Hotel Booking Platform."""

import subprocess
import sys


def start():
    """Start the development server."""
    subprocess.run([
        "uvicorn",
        "hotel_booking_platform.main:app",
        "--host", "0.0.0.0",
        "--port", "3000",
        "--reload"
    ])


def worker():
    """Start a Celery worker for the maintenance sweeps."""
    subprocess.run([
        "celery", "-A", "hotel_booking_platform.tasks.celery_app:celery_app",
        "worker", "--loglevel=info"
    ])


def beat():
    """Start the Celery beat scheduler."""
    subprocess.run([
        "celery", "-A", "hotel_booking_platform.tasks.celery_app:celery_app",
        "beat", "--loglevel=info"
    ])


def test():
    """Run the test suite."""
    subprocess.run(["pytest", "tests/"])


def lint():
    """Run linting and type checking."""
    subprocess.run(["black", "--check", "hotel_booking_platform/"])
    subprocess.run(["mypy", "hotel_booking_platform/"])


def format_code():
    """Format code with black."""
    subprocess.run(["black", "hotel_booking_platform/", "tests/"])


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python scripts.py <command>")
        print("Commands: start, worker, beat, test, lint, format-code")
        sys.exit(1)

    command = sys.argv[1].replace("-", "_")
    if hasattr(sys.modules[__name__], command):
        getattr(sys.modules[__name__], command)()
    else:
        print(f"Unknown command: {sys.argv[1]}")
        sys.exit(1)
