import pandas as pd
import pytest

from nh_drug_episodes.classify import FULL_ENROLLMENT, PARTIAL_ENROLLMENT


def ts(s):
    return pd.Timestamp(s)


def stays(rows):
    """Hospital or SNF stays from (BENE_ID, entry, discharge) tuples."""
    return pd.DataFrame({'BENE_ID': [r[0] for r in rows],
                         'MEDPAR_ID': ['m{}'.format(i) for i in range(len(rows))],
                         'entry_date': pd.to_datetime([r[1] for r in rows]),
                         'discharge_date': pd.to_datetime([r[2] for r in rows]),
                         'dschrg_missing': 0})


def nh_day_level(rows):
    """Day-level NH episodes from (BENE_ID, nh_episode_id, entry, discharge, enrollcat) tuples."""
    df = pd.DataFrame({'BENE_ID': [r[0] for r in rows],
                       'nh_episode_id': [r[1] for r in rows],
                       'entry_date': pd.to_datetime([r[2] for r in rows]),
                       'discharge_date': pd.to_datetime([r[3] for r in rows]),
                       'enrollcat': [r[4] for r in rows]})
    df['discharge_type'] = '10'
    df['return_anticipated'] = 0
    df['no_discharge'] = 0
    df['death_dt'] = pd.NaT
    df['death_error'] = 0
    df['death_match'] = 0
    ## fully enrolled episodes carry the bounds of their enrollment episode
    full = df['enrollcat'] == FULL_ENROLLMENT
    df['enroll_start'] = df['entry_date'].where(full)
    df['enroll_end'] = df['discharge_date'].where(full)
    return df


def enrollment(rows):
    """Enrollment episodes from (BENE_ID, enroll_start, enroll_end) tuples."""
    return pd.DataFrame({'BENE_ID': [r[0] for r in rows],
                         'enroll_episode_id': list(range(1, len(rows) + 1)),
                         'enroll_start': pd.to_datetime([r[1] for r in rows]),
                         'enroll_end': pd.to_datetime([r[2] for r in rows])})


@pytest.fixture
def empty_stays():
    return stays([])


@pytest.fixture
def no_deaths():
    return pd.DataFrame({'BENE_ID': pd.Series(dtype=object), 'death_dt': pd.Series(dtype='datetime64[ns]')})


@pytest.fixture
def population():
    """Three residents with full, partial and partial enrollment, hospital and SNF stays."""
    nh = nh_day_level([
        ('A', 1, '2015-01-01', '2015-01-31', FULL_ENROLLMENT),
        ('A', 2, '2015-03-01', '2015-03-20', PARTIAL_ENROLLMENT),
        ('B', 3, '2015-02-10', '2015-04-10', PARTIAL_ENROLLMENT),
        ('C', 4, '2015-06-01', '2015-06-30', FULL_ENROLLMENT),
    ])
    enroll = enrollment([
        ('A', '2015-03-10', '2015-12-31'),
        ('B', '2015-01-01', '2015-02-28'),
        ('B', '2015-04-01', '2015-04-30'),
    ])
    hospital = stays([('A', '2015-01-10', '2015-01-12'), ('C', '2015-06-05', '2015-06-06')])
    snf = stays([('B', '2015-02-20', '2015-02-22'), ('C', '2015-06-06', '2015-06-08')])
    return nh, enroll, hospital, snf
