from rule_dedupe.cli import main

main()
