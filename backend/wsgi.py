from pdcms import create_app

app = create_app()
