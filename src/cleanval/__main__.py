from cleanval.run import main

main()
