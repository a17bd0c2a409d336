from content_admin.cli.main import app

app()
