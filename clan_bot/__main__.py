from clan_bot.main import main


main()
