from graph_editor.app import main

main()
