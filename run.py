from chapterscout_app import create_app

app = create_app()

if __name__ == '__main__':
    # HOST / PORT / FLASK_DEBUG come from the environment via chapterscout_app.config
    host = app.config.get('HOST', '127.0.0.1')
    port = app.config.get('PORT', 5000)
    debug = app.config.get('DEBUG', False)

    app.run(host=host, port=port, debug=debug)
