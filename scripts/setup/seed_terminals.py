# scripts/setup/seed_terminals.py
"""
Seed demo terminals, focal persons, neighborhoods and dispatchers.
Provisioning normally lives in the admin service; this is for local runs.
Existing rows (matched by id) are left untouched.
Usage: python scripts/setup/seed_terminals.py [--count 3]
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

import argparse
import json
from app.database import SessionLocal, create_tables
from app.models import Dispatcher, FocalPerson, Neighborhood, Terminal

DISPATCHERS = [("D01", "Dana Cruz"), ("D02", "Ramon Reyes")]

FOCAL_NAMES = [("Maria", "Santos"), ("Jose", "Rizal"), ("Ana", "Lopez"), ("Pedro", "Garcia")]


def _add_if_missing(db, model, **fields):
    if db.get(model, fields["id"]) is None:
        db.add(model(**fields))
        return True
    return False


def seed(count: int):
    db = SessionLocal()
    added = 0
    try:
        for dispatcher_id, name in DISPATCHERS:
            added += _add_if_missing(db, Dispatcher, id=dispatcher_id, name=name)

        for n in range(1, count + 1):
            first, last = FOCAL_NAMES[(n - 1) % len(FOCAL_NAMES)]
            address = json.dumps({
                "address": f"Block {n}, Barangay Malanday, Marikina",
                "coordinates": f"{121.09 + n / 1000:.4f},{14.65 + n / 1000:.4f}",
            })
            added += _add_if_missing(db, Terminal, id=f"RESQWAVE{n:03d}", name=f"Terminal {n}", status="Online")
            added += _add_if_missing(db, FocalPerson, id=f"FP{n:03d}", first_name=first, last_name=last,
                                     contact_number=f"0917000{n:04d}", address=address)
            added += _add_if_missing(db, Neighborhood, id=f"N{n:03d}",
                                     terminal_id=f"RESQWAVE{n:03d}", focal_person_id=f"FP{n:03d}")
        db.commit()
    finally:
        db.close()
    return added


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed demo terminals and people")
    parser.add_argument("--count", type=int, default=3, help="Number of terminals to create")
    args = parser.parse_args()

    create_tables()
    print(f"🌱 Seeded {seed(args.count)} new row(s)")
    print("   Dispatcher headers: X-User-Id: D01, X-User-Role: dispatcher")
