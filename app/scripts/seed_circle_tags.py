"""
Seed Circle Tag Config Script
Upserts the descriptive tags used to steer AI prompt tone into circle_tag_config.
Run after schema.sql; safe to re-run.
"""

import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from app.database.supabase_client import SupabaseClient, Tables
from supabase import Client
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

BATCH_SIZE = 25

CIRCLE_TAGS = [
    {
        "tag_key": "new_parents",
        "display_label": "New parents",
        "category": "life_stage",
        "description": "Parents or caregivers of infants.",
        "tone_guidance": "Keep prompts simple, gentle, and understanding of exhaustion and limited time.",
        "active": True,
    },
    {
        "tag_key": "grandparents",
        "display_label": "Grandparents",
        "category": "life_stage",
        "description": "Circles that include grandparents sharing family history.",
        "tone_guidance": "Invite stories and memories from earlier decades; avoid technology-heavy questions.",
        "active": True,
    },
    {
        "tag_key": "long_distance",
        "display_label": "Long-distance family",
        "category": "life_stage",
        "description": "Family members living in different cities or countries.",
        "tone_guidance": "Focus on small everyday details that help people feel close despite distance.",
        "active": True,
    },
    {
        "tag_key": "cooking",
        "display_label": "Cooking",
        "category": "interest",
        "description": "Families who bond over food and recipes.",
        "tone_guidance": "Ask about favourite dishes, recipes handed down, and memorable meals.",
        "active": True,
    },
    {
        "tag_key": "outdoors",
        "display_label": "Outdoors",
        "category": "interest",
        "description": "Hiking, camping, gardening and time outside.",
        "tone_guidance": "Ask about trips, places, seasons and small outdoor moments.",
        "active": True,
    },
    {
        "tag_key": "politics",
        "display_label": "Politics",
        "category": "interest",
        "description": "Circles comfortable discussing current events.",
        "tone_guidance": "Stay curious and respectful; ask about values and experiences rather than positions.",
        "active": False,
    },
    {
        "tag_key": "grief",
        "display_label": "Grieving together",
        "category": "support",
        "description": "Families supporting each other after a loss.",
        "tone_guidance": "Be gentle; favour warm memories and gratitude, never push for details of the loss.",
        "active": True,
    },
    {
        "tag_key": "caregiving",
        "display_label": "Caregiving",
        "category": "support",
        "description": "Members caring for an ill or elderly relative.",
        "tone_guidance": "Acknowledge effort, keep prompts light and optional, and offer room for small wins.",
        "active": True,
    },
]


def seed_tags(supabase: Client, tags=CIRCLE_TAGS) -> int:
    """Upsert tags in batches. Returns the number of rows written."""
    written = 0
    for start in range(0, len(tags), BATCH_SIZE):
        batch = tags[start:start + BATCH_SIZE]
        supabase.table(Tables.TAG_CONFIG).upsert(batch, on_conflict="tag_key").execute()
        written += len(batch)
        logger.info(f"Wrote {len(batch)} tags...")
    return written


def main():
    try:
        supabase = SupabaseClient.get_service_client()
        logger.info(f"Seeding {len(CIRCLE_TAGS)} tags into {Tables.TAG_CONFIG}...")
        count = seed_tags(supabase)
        logger.info(f"Done seeding {count} tags.")
    except Exception as e:
        logger.error(f"Error seeding tags: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
