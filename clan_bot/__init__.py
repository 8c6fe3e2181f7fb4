"""Discord bot for a World of Tanks clan: trivia, fold recruitment and news."""
