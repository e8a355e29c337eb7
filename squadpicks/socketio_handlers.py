"""
SocketIO Event Handlers for Real-time Updates

Clients connect to the /picks namespace. Every connection joins the
broadcast room; authenticated users also join their own room so grade
notifications reach only the pick owner.
"""

import logging
from datetime import datetime, timezone

from flask import request
from flask_login import current_user
from flask_socketio import join_room, leave_room

from squadpicks import socketio

logger = logging.getLogger(__name__)

NAMESPACE = "/picks"
BROADCAST_ROOM = "week"

# Track connected clients
connected_users = {}


def user_room(user_id):
    return f"user_{user_id}"


@socketio.on("connect", namespace=NAMESPACE)
def on_connect():
    """Handle client connection to the picks namespace"""
    try:
        user_id = current_user.id if current_user.is_authenticated else None
        client_id = request.sid

        connected_users[client_id] = {"user_id": user_id}
        join_room(BROADCAST_ROOM)
        if user_id is not None:
            join_room(user_room(user_id))

        logger.info(f"Client connected to {NAMESPACE}: {client_id} (user: {user_id})")

    except Exception as e:
        logger.error(f"Error in picks connect: {e}")


@socketio.on("disconnect", namespace=NAMESPACE)
def on_disconnect(*args):
    """Handle client disconnection from the picks namespace"""
    try:
        client_id = request.sid
        info = connected_users.pop(client_id, None)
        if info and info["user_id"] is not None:
            leave_room(user_room(info["user_id"]))
            logger.info(
                f"Client disconnected from {NAMESPACE}: {client_id} (user: {info['user_id']})"
            )
    except Exception as e:
        logger.error(f"Error in picks disconnect: {e}")


def _emit(event, data, room):
    payload = dict(data)
    payload["timestamp"] = datetime.now(timezone.utc).isoformat()
    socketio.emit(event, payload, room=room, namespace=NAMESPACE)


# Broadcast functions (called from services and the scheduler)
def notify_week_opened(state):
    """Tell everyone picks for a week are open"""
    try:
        _emit("week_opened", state.to_dict(), BROADCAST_ROOM)
        logger.info(f"Broadcasted week_opened for {state.week_id}")
    except Exception as e:
        logger.error(f"Error broadcasting week_opened: {e}")


def notify_week_locked(week_id, locked_count=0):
    """Tell everyone picks for a week are locked"""
    try:
        _emit(
            "week_locked",
            {"week_id": str(week_id), "locked_pick_sets": locked_count},
            BROADCAST_ROOM,
        )
        logger.info(f"Broadcasted week_locked for {week_id}")
    except Exception as e:
        logger.error(f"Error broadcasting week_locked: {e}")


def notify_grade_posted(user_id, grades):
    """
    Send a user their freshly graded picks

    Args:
        user_id: Owner of the picks
        grades: list of pick dicts (Pick.to_dict())
    """
    try:
        _emit("grade_posted", {"user_id": user_id, "picks": grades}, user_room(user_id))
        logger.debug(f"Sent grade_posted to user {user_id} ({len(grades)} picks)")
    except Exception as e:
        logger.error(f"Error sending grade_posted to user {user_id}: {e}")

