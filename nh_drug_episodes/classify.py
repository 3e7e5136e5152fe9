## PROJECT: DRUG-OBSERVABLE NURSING HOME EPISODES
## THIS MODULE COMPARES NURSING HOME EPISODES WITH ENROLLMENT EPISODES AND SORTS EACH NURSING HOME EPISODE INTO
## NO ENROLLMENT, FULL ENROLLMENT OR PARTIAL ENROLLMENT; ONLY EPISODES WITH SOME ENROLLMENT GO TO THE DAY LEVEL

import logging
from collections import namedtuple

import numpy as np

logger = logging.getLogger(__name__)

NO_ENROLLMENT = 'no_enrollment'
FULL_ENROLLMENT = 'full_enrollment'
PARTIAL_ENROLLMENT = 'partial_enrollment'

Classification = namedtuple('Classification', ['episodes', 'day_level', 'enrollment'])


def overlapping_enrollment(nh, enroll):
    """All (NH episode, enrollment episode) pairs of the same beneficiary whose intervals overlap."""
    pairs = nh[['BENE_ID', 'nh_episode_id', 'entry_date', 'discharge_date']].merge(enroll, on='BENE_ID')
    overlap = (pairs['enroll_start'] <= pairs['discharge_date']) & (pairs['enroll_end'] >= pairs['entry_date'])
    pairs = pairs[overlap].copy()
    pairs['contains'] = ((pairs['enroll_start'] <= pairs['entry_date']) &
                         (pairs['enroll_end'] >= pairs['discharge_date']))
    return pairs


def classify_episodes(nh, enroll):
    """Tag each NH episode with its enrollment category.

    Returns a Classification of
      episodes:   every NH episode with `enrollcat`, plus the enrollment bounds for full enrollment
      day_level:  one row per NH episode needing day-level work (full and partial enrollment)
      enrollment: the enrollment episodes overlapping partially enrolled NH episodes
    """
    pairs = overlapping_enrollment(nh, enroll)
    counts = pairs.groupby('nh_episode_id').agg(n_overlap=('enroll_episode_id', 'count'),
                                                n_contain=('contains', 'sum'))

    episodes = nh.drop(columns=['enrollcat', 'enroll_start', 'enroll_end'], errors='ignore')
    episodes = episodes.merge(counts, left_on='nh_episode_id', right_index=True, how='left')
    episodes[['n_overlap', 'n_contain']] = episodes[['n_overlap', 'n_contain']].fillna(0).astype(int)
    episodes['enrollcat'] = np.select(
        [episodes['n_overlap'] == 0,
         (episodes['n_overlap'] == 1) & (episodes['n_contain'] == 1)],
        [NO_ENROLLMENT, FULL_ENROLLMENT],
        default=PARTIAL_ENROLLMENT)

    ## carry the bounds of the enrollment episode that covers a fully enrolled NH episode
    full = pairs.loc[pairs['contains'], ['nh_episode_id', 'enroll_start', 'enroll_end']]
    episodes = episodes.merge(full, on='nh_episode_id', how='left')
    episodes = episodes.drop(columns=['n_overlap', 'n_contain'])
    logger.info('enrollment categories: %s', episodes['enrollcat'].value_counts().to_dict())

    day_level = episodes[episodes['enrollcat'] != NO_ENROLLMENT].drop_duplicates('nh_episode_id')
    partial_ids = episodes.loc[episodes['enrollcat'] == PARTIAL_ENROLLMENT, 'nh_episode_id']
    enrollment = pairs.loc[pairs['nh_episode_id'].isin(partial_ids),
                           ['BENE_ID', 'nh_episode_id', 'enroll_episode_id', 'enroll_start', 'enroll_end']]
    return Classification(episodes.reset_index(drop=True),
                          day_level.reset_index(drop=True),
                          enrollment.reset_index(drop=True))
