"""
Location Reference Data

Static lookup tables used when deriving and validating city/state values
from municipal violation exports.
"""

# USPS codes for the 50 states plus DC
US_STATES = {
    'AL': 'ALABAMA', 'AK': 'ALASKA', 'AZ': 'ARIZONA', 'AR': 'ARKANSAS',
    'CA': 'CALIFORNIA', 'CO': 'COLORADO', 'CT': 'CONNECTICUT', 'DE': 'DELAWARE',
    'DC': 'DISTRICT OF COLUMBIA', 'FL': 'FLORIDA', 'GA': 'GEORGIA', 'HI': 'HAWAII',
    'ID': 'IDAHO', 'IL': 'ILLINOIS', 'IN': 'INDIANA', 'IA': 'IOWA',
    'KS': 'KANSAS', 'KY': 'KENTUCKY', 'LA': 'LOUISIANA', 'ME': 'MAINE',
    'MD': 'MARYLAND', 'MA': 'MASSACHUSETTS', 'MI': 'MICHIGAN', 'MN': 'MINNESOTA',
    'MS': 'MISSISSIPPI', 'MO': 'MISSOURI', 'MT': 'MONTANA', 'NE': 'NEBRASKA',
    'NV': 'NEVADA', 'NH': 'NEW HAMPSHIRE', 'NJ': 'NEW JERSEY', 'NM': 'NEW MEXICO',
    'NY': 'NEW YORK', 'NC': 'NORTH CAROLINA', 'ND': 'NORTH DAKOTA', 'OH': 'OHIO',
    'OK': 'OKLAHOMA', 'OR': 'OREGON', 'PA': 'PENNSYLVANIA', 'RI': 'RHODE ISLAND',
    'SC': 'SOUTH CAROLINA', 'SD': 'SOUTH DAKOTA', 'TN': 'TENNESSEE', 'TX': 'TEXAS',
    'UT': 'UTAH', 'VT': 'VERMONT', 'VA': 'VIRGINIA', 'WA': 'WASHINGTON',
    'WV': 'WEST VIRGINIA', 'WI': 'WISCONSIN', 'WY': 'WYOMING',
}

STATE_NAME_TO_CODE = {name: code for code, name in US_STATES.items()}

# Markets that show up in municipal code-enforcement exports. Used to peel a
# city name off the end of a one-line address.
KNOWN_CITIES = [
    'Albuquerque', 'Anaheim', 'Arlington', 'Atlanta', 'Aurora', 'Austin',
    'Bakersfield', 'Baltimore', 'Baton Rouge', 'Birmingham', 'Boise', 'Boston',
    'Buffalo', 'Chandler', 'Charlotte', 'Chesapeake', 'Chicago', 'Cincinnati',
    'Cleveland', 'Colorado Springs', 'Columbus', 'Corpus Christi', 'Dallas',
    'Daytona Beach', 'Deltona', 'Denver', 'Des Moines', 'Detroit', 'Durham',
    'El Paso', 'Fort Lauderdale', 'Fort Myers', 'Fort Wayne', 'Fort Worth',
    'Fresno', 'Gainesville', 'Garland', 'Gilbert', 'Glendale', 'Grand Rapids',
    'Greensboro', 'Henderson', 'Hialeah', 'Houston', 'Indianapolis',
    'Jacksonville', 'Jersey City', 'Kansas City', 'Kissimmee', 'Lakeland',
    'Laredo', 'Las Vegas', 'Lexington', 'Lincoln', 'Little Rock', 'Long Beach',
    'Los Angeles', 'Louisville', 'Lubbock', 'Memphis', 'Mesa', 'Miami',
    'Miami Gardens', 'Milwaukee', 'Minneapolis', 'Mobile', 'Montgomery',
    'Nashville', 'New Orleans', 'New York', 'Newark', 'Norfolk',
    'North Las Vegas', 'Oakland', 'Ocala', 'Oklahoma City', 'Omaha', 'Orlando',
    'Palm Bay', 'Philadelphia', 'Phoenix', 'Pittsburgh', 'Plano',
    'Port St. Lucie', 'Portland', 'Raleigh', 'Reno', 'Richmond', 'Riverside',
    'Rochester', 'Sacramento', 'Saint Louis', 'Saint Paul', 'Salt Lake City',
    'San Antonio', 'San Diego', 'San Francisco', 'San Jose', 'Sanford',
    'Santa Ana', 'Sarasota', 'Savannah', 'Scottsdale', 'Seattle', 'Shreveport',
    'Spokane', 'St. Louis', 'St. Paul', 'St. Petersburg', 'Stockton',
    'Tallahassee', 'Tampa', 'Tempe', 'Toledo', 'Tucson', 'Tulsa',
    'Virginia Beach', 'Washington', 'West Palm Beach', 'Wichita',
    'Winston-Salem', 'Winter Park', 'Winter Haven',
]

# Real municipalities whose names contain violation vocabulary
VOCABULARY_PLACE_NAMES = [
    'Broken Arrow', 'Broken Bow', 'Fence Lake', 'Grass Lake', 'Grass Valley',
    'Hazard', 'Hurricane', 'Storm Lake', 'Weed', 'Window Rock',
]

# Longest first so "North Las Vegas" wins over "Las Vegas"
KNOWN_CITIES_BY_LENGTH = sorted(KNOWN_CITIES, key=len, reverse=True)

STREET_TYPES = {
    'ALLEY', 'ALY', 'AVENUE', 'AVE', 'AV', 'BOULEVARD', 'BLVD', 'CIRCLE', 'CIR',
    'COURT', 'CT', 'DRIVE', 'DR', 'EXPRESSWAY', 'EXPY', 'HIGHWAY', 'HWY',
    'LANE', 'LN', 'PARKWAY', 'PKWY', 'PLACE', 'PL', 'ROAD', 'RD',
    'STREET', 'ST', 'TERRACE', 'TER', 'TRAIL', 'TRL', 'WAY', 'LOOP', 'PATH',
    'PIKE', 'PLAZA', 'PLZ', 'POINT', 'PT', 'RIDGE', 'RDG', 'RUN', 'SQUARE', 'SQ',
}

# Words that mark a value as violation narrative rather than a place name
VIOLATION_VOCABULARY = [
    'violation', 'debris', 'trash', 'weeds', 'weed', 'overgrown', 'illegal',
    'unpermitted', 'code', 'notice', 'complaint', 'hazard', 'unsafe', 'repair',
    'maintain', 'fence', 'yard', 'property', 'building', 'structure',
    'obstruct', 'parked', 'stored', 'dumped', 'vehicle', 'junk', 'abandoned',
    'grass', 'permit', 'inspection', 'citation', 'please', 'must', 'should',
    'shall', 'required', 'notify', 'backyard', 'front yard', 'rear', 'porch',
    'roof', 'window', 'hurricane', 'storm', 'flood', 'damage', 'broken',
    'missing',
]

# Column names that leak into the city field when headers are misaligned
HEADER_WORDS = {
    'address', 'property address', 'site address', 'city', 'state', 'zip',
    'zip code', 'zipcode', 'case', 'case number', 'case id', 'description',
    'location', 'status', 'violation', 'violation type', 'opened date',
    'date', 'county', 'n/a', 'na', 'none', 'null', 'unknown',
}
