from tram.tram_repl import main

main()
