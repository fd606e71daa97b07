from .cli import mirrorcheck_main

mirrorcheck_main()
