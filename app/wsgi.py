from app.qdms import create_app

app = create_app()
