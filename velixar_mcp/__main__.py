from velixar_mcp.server import main

main()
