"""
Generate a week of sample events and send them to a Keen project.

Requires a .env file (or exported variables) with KEEN_PROJECT_ID,
KEEN_READ_KEY and KEEN_WRITE_KEY, and python-dotenv:

    pip install -e .[scripts]
    python scripts/generate_sample_data.py
"""

import random
import time
from datetime import datetime, timedelta, timezone
from dotenv import load_dotenv

from keen_driver import KeenDriver, Query, DriverError, keen_properties

load_dotenv()

USER_IDS = [f"user_{i:04d}" for i in range(1, 201)]

PAGES = ["/", "/pricing", "/docs", "/blog", "/signup", "/checkout"]

PRODUCTS = [
    {"id": "prod_001", "name": "Wireless Headphones", "category": "Electronics", "price": 79.99},
    {"id": "prod_002", "name": "Running Shoes", "category": "Sports", "price": 129.99},
    {"id": "prod_003", "name": "Coffee Maker", "category": "Home", "price": 89.99},
    {"id": "prod_004", "name": "Laptop Backpack", "category": "Accessories", "price": 49.99},
    {"id": "prod_005", "name": "Yoga Mat", "category": "Sports", "price": 29.99},
    {"id": "prod_006", "name": "Smart Watch", "category": "Electronics", "price": 299.99},
]

PLATFORMS = ["iOS", "Android", "Web"]


def event_time(days_ago=0, hours_ago=0):
    """Timestamp block for an event in the past"""
    when = datetime.now(timezone.utc) - timedelta(days=days_ago, hours=hours_ago)
    return keen_properties(when)


def create_user_session(user_id, day_offset):
    """Build one visit: page views, maybe a signup, maybe purchases"""
    events = {"pageviews": [], "signups": [], "purchases": []}
    platform = random.choice(PLATFORMS)

    for step in range(random.randint(1, 6)):
        events["pageviews"].append({
            "userId": user_id,
            "page": random.choice(PAGES),
            "platform": platform,
            "keen": event_time(days_ago=day_offset, hours_ago=-step * 0.1),
        })

    if random.random() < 0.2:
        events["signups"].append({
            "userId": user_id,
            "platform": platform,
            "keen": event_time(days_ago=day_offset),
        })

    if random.random() < 0.3:
        product = random.choice(PRODUCTS)
        events["purchases"].append({
            "userId": user_id,
            "product": product,
            "price": product["price"],
            "platform": platform,
            "keen": event_time(days_ago=day_offset, hours_ago=-1),
        })

    return {name: items for name, items in events.items() if items}


def main():
    client = KeenDriver.from_env()

    print("Generating sample data for Keen...\n")

    for day in range(7):
        daily_users = random.sample(USER_IDS, random.randint(20, 60))
        batch = {}
        for user_id in daily_users:
            for collection, items in create_user_session(user_id, day).items():
                batch.setdefault(collection, []).extend(items)

        counts = {name: len(items) for name, items in batch.items()}
        print(f"Day {day + 1}/7: sending {counts}...", end=" ")

        try:
            client.add_events(batch)
        except DriverError as e:
            print(f"failed: {e}")
            break
        print("ok")

        time.sleep(0.5)

    try:
        result = client.get_analysis(Query(
            analysis_type="average",
            event_collection="purchases",
            target_property="price",
            group_by="userId",
        ))
        top = result.sorted_entries(reverse=True)[:5]
        print("\nTop spenders (average purchase price):")
        for entry in top:
            print(f"  {entry.user_id}: {entry.result:.2f}")
    except DriverError as e:
        print(f"\nQuery failed: {e}")
    finally:
        client.close()


if __name__ == "__main__":
    main()
