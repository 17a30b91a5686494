from pos_events import create_app

app = create_app()
