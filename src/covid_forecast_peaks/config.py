# Shared run configuration. CLI flags in pipeline.py override these per run.

CONFIG = {
    "epidata_url": "https://api.delphi.cmu.edu/epidata/covidcast/",
    "case_source": "jhu-csse",
    "case_signal": "confirmed_incidence_num",
    "hub_contents_url": "https://api.github.com/repos/reichlab/covid19-forecast-hub/contents/data-processed",
    "hub_raw_url": "https://raw.githubusercontent.com/reichlab/covid19-forecast-hub/master/data-processed",
    "timeout": 30,
    "peak_window": 3,
    "horizons": [1, 2, 3, 4],
    "week_end": "W-SAT",
}

# Hub quantile levels for case targets (7 levels, 3 intervals + median)
CASE_QUANTILES = [0.025, 0.1, 0.25, 0.5, 0.75, 0.9, 0.975]

# Hub location codes are FIPS; Epidata wants postal abbreviations
STATE_FIPS = {
    'al': '01', 'ak': '02', 'az': '04', 'ar': '05', 'ca': '06',
    'co': '08', 'ct': '09', 'de': '10', 'dc': '11', 'fl': '12', 'ga': '13',
    'hi': '15', 'id': '16', 'il': '17', 'in': '18', 'ia': '19',
    'ks': '20', 'ky': '21', 'la': '22', 'me': '23', 'md': '24',
    'ma': '25', 'mi': '26', 'mn': '27', 'ms': '28', 'mo': '29',
    'mt': '30', 'ne': '31', 'nv': '32', 'nh': '33', 'nj': '34',
    'nm': '35', 'ny': '36', 'nc': '37', 'nd': '38', 'oh': '39',
    'ok': '40', 'or': '41', 'pa': '42', 'ri': '44', 'sc': '45',
    'sd': '46', 'tn': '47', 'tx': '48', 'ut': '49', 'vt': '50',
    'va': '51', 'wa': '53', 'wv': '54', 'wi': '55', 'wy': '56',
    'us': 'US',
}
