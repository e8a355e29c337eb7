# Eventlet monkey patching MUST be first before any other imports
import eventlet
eventlet.monkey_patch()

from squadpicks import create_app, db, socketio
from squadpicks.models import Game, GameLine, Pick, PickSet, Squad, SquadMember, User

app = create_app()


@app.shell_context_processor
def make_shell_context():
    return {
        "db": db,
        "User": User,
        "Squad": Squad,
        "SquadMember": SquadMember,
        "Game": Game,
        "GameLine": GameLine,
        "PickSet": PickSet,
        "Pick": Pick,
    }


if __name__ == "__main__":
    socketio.run(app, host="0.0.0.0", port=5000, debug=app.config.get("DEBUG", False))
