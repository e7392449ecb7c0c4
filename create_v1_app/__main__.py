from create_v1_app.cli import main

main()
