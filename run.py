from quinielas import create_app, db
from quinielas.models import SurvivorGame, SurvivorParticipant, SurvivorPick, User

app = create_app()


@app.shell_context_processor
def make_shell_context():
    return {
        "db": db,
        "User": User,
        "SurvivorGame": SurvivorGame,
        "SurvivorParticipant": SurvivorParticipant,
        "SurvivorPick": SurvivorPick,
    }


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=5000, debug=True)
