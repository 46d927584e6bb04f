from schoolbites import create_app

app = create_app()
