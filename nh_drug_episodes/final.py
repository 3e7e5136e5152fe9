## PROJECT: DRUG-OBSERVABLE NURSING HOME EPISODES
## THIS MODULE SELECTS AND ORDERS THE COLUMNS OF THE PUBLISHED TABLES;
## INTERNAL EPISODE IDS ARE DROPPED AND THE NURSING HOME ENTRY DATE SERVES AS THE NATURAL KEY

NH_EPISODE_COLS = ['BENE_ID', 'entry_date', 'discharge_date', 'discharge_type', 'return_anticipated',
                   'no_discharge', 'death_error', 'death_dt', 'death_match']
DRUG_OBS_COLS = ['BENE_ID', 'entry_date', 'obs_start', 'obs_end', 'enroll_start', 'enroll_end', 'enrollcat',
                 'discharge_date', 'discharge_type', 'return_anticipated', 'no_discharge', 'death_error',
                 'death_dt', 'death_match']


def publish_nh_episodes(episodes):
    return episodes.reindex(columns=NH_EPISODE_COLS).sort_values(['BENE_ID', 'entry_date']).reset_index(drop=True)


def publish_drug_observable(episodes):
    return episodes.reindex(columns=DRUG_OBS_COLS).sort_values(['BENE_ID', 'entry_date', 'obs_start']).reset_index(drop=True)
