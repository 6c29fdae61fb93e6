"""
Scheduled tasks for the TNT Tag History site.
This script is designed to be run as a daily scheduled task.

Usage:
    python /home/yourusername/mysite/tasks.py

The task runs once daily and:
1. Re-resolves every player's current in-game name from their UUID
2. Moves a changed name into the player's past names
"""
import datetime
import os
import sys

# Add the project to the Python path so the package imports without install
project_dir = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, project_dir)

from tnt_history import create_app
from tnt_history.errors import IdentityLookupError
from tnt_history.extensions import db
from tnt_history.identity import lookup_name
from tnt_history.models import Player


def refresh_player_names():
    """
    Look up every player's current name and record renames.

    Returns:
        (renamed, failed) counts
    """
    renamed = 0
    failed = 0
    for player in Player.query.order_by(Player.current_ign).all():
        try:
            name = lookup_name(player.uuid)
        except IdentityLookupError as e:
            print(f"  Lookup failed for {player.current_ign} ({player.uuid}): {e}")
            failed += 1
            continue

        if name == player.current_ign:
            continue

        past = player.past_igns
        if player.current_ign and player.current_ign.lower() not in (p.lower() for p in past):
            past.append(player.current_ign)
        print(f"  {player.current_ign} -> {name}")
        player.past_igns = past
        player.current_ign = name
        player.last_updated = datetime.datetime.utcnow()
        renamed += 1

    db.session.commit()
    return renamed, failed


def main():
    print(f"=== Scheduled Task Running at {datetime.datetime.now()} ===")
    app = create_app(os.environ.get("TNT_CONFIG", "config.Config"))
    with app.app_context():
        renamed, failed = refresh_player_names()
    print(f"Renamed {renamed} player(s), {failed} lookup failure(s)")
    print("=== Task Complete ===")


if __name__ == "__main__":
    main()
