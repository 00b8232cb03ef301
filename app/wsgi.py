from app.questboard import create_app

app = create_app()
