"""JSON reference catalog read by gamedata: items, recipes and fluid colors."""
