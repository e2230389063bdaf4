from impostor import create_app, socketio

app = create_app()

if __name__ == '__main__':
    # Use SocketIO server to enable websockets in dev
    try:
        socketio.run(app, debug=True)
    finally:
        app.extensions['session_registry'].shutdown()
