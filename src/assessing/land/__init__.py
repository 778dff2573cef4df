"""Land valuation: acreage ladders, line calculations and zone minimums.

Land lines are valued from the zone's ladder, then adjusted by neighborhood,
site, driveway, road, topography and condition factors. Current-use cards
carry a separate assessed value.
"""
