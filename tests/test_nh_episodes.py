"""Tests for entry-anchored and admission-anchored nursing home episodes."""
import numpy as np
import pandas as pd

from nh_drug_episodes.mds import NO_DISCHARGE, RETURN_ANTICIPATED, RETURN_NOT_ANTICIPATED
from nh_drug_episodes.nh_episodes import (EPISODE_COLS, build_admission_episodes, build_ed_pairs,
                                          build_entry_episodes)
from tests.conftest import ts

STUDY_END = ts('2015-12-31')


def _entries(rows):
    return pd.DataFrame({'BENE_ID': [r[0] for r in rows],
                         'fac_state_id': [r[1] for r in rows],
                         'entry_date': pd.to_datetime([r[2] for r in rows])})


def _discharges(rows):
    """(BENE_ID, fac_state_id, entry, discharge, discharge_type) tuples."""
    df = pd.DataFrame({'BENE_ID': [r[0] for r in rows],
                       'fac_state_id': [r[1] for r in rows],
                       'entry_date': pd.to_datetime([r[2] for r in rows]),
                       'discharge_date': pd.to_datetime([r[3] for r in rows]),
                       'discharge_type': [r[4] for r in rows]})
    df['return_anticipated'] = np.where(df['discharge_type'] == '11', RETURN_ANTICIPATED, RETURN_NOT_ANTICIPATED)
    return df


def _admissions(rows):
    return pd.DataFrame({'BENE_ID': [r[0] for r in rows],
                         'fac_state_id': [r[1] for r in rows],
                         'entry_date': pd.to_datetime([r[2] for r in rows]),
                         'asmt_date': pd.to_datetime([r[3] for r in rows])})


def _deaths(rows):
    return pd.DataFrame({'BENE_ID': [r[0] for r in rows], 'death_dt': pd.to_datetime([r[1] for r in rows])})


def _pairs(entries, discharges, admissions=()):
    return build_ed_pairs(_entries(entries), _discharges(discharges), _admissions(admissions), STUDY_END)


def _entry_episodes(rows):
    """Entry-anchored episodes from (BENE_ID, entry, discharge, return_anticipated, admsn_asmt_date) tuples."""
    df = pd.DataFrame({'BENE_ID': [r[0] for r in rows],
                       'nh_episode_id': list(range(1, len(rows) + 1)),
                       'fac_state_id': '0000000001IL',
                       'entry_date': pd.to_datetime([r[1] for r in rows]),
                       'discharge_date': pd.to_datetime([r[2] for r in rows]),
                       'return_anticipated': [r[3] for r in rows],
                       'admsn_asmt_date': pd.to_datetime([r[4] for r in rows])})
    df['discharge_type'] = np.where(df['return_anticipated'] == RETURN_ANTICIPATED, '11', '10')
    df['no_discharge'] = 0
    df['death_dt'] = pd.NaT
    df['death_error'] = 0
    df['death_match'] = 0
    return df[EPISODE_COLS]


class TestEdPairs:

    def test_earliest_discharge_wins(self):
        pairs = _pairs([('A', 'f1', '2015-01-01')],
                       [('A', 'f1', '2015-01-01', '2015-03-01', '10'),
                        ('A', 'f1', '2015-01-01', '2015-02-01', '11')])
        assert len(pairs) == 1
        assert pairs.loc[0, 'discharge_date'] == ts('2015-02-01')
        assert pairs.loc[0, 'return_anticipated'] == RETURN_ANTICIPATED

    def test_same_day_discharge_prefers_return_not_anticipated(self):
        pairs = _pairs([('A', 'f1', '2015-01-01')],
                       [('A', 'f1', '2015-01-01', '2015-02-01', '11'),
                        ('A', 'f1', '2015-01-01', '2015-02-01', '10')])
        assert pairs['discharge_type'].tolist() == ['10']

    def test_entry_without_discharge_runs_to_study_end(self):
        pairs = _pairs([('A', 'f1', '2015-06-01')], [])
        assert pairs.loc[0, 'discharge_date'] == STUDY_END
        assert pairs.loc[0, 'no_discharge'] == 1
        assert pairs.loc[0, 'return_anticipated'] == NO_DISCHARGE

    def test_discharge_from_another_facility_is_not_paired(self):
        pairs = _pairs([('A', 'f1', '2015-01-01')],
                       [('A', 'f2', '2015-01-01', '2015-02-01', '10')])
        assert pairs.loc[0, 'no_discharge'] == 1

    def test_earliest_admission_assessment(self):
        pairs = _pairs([('A', 'f1', '2015-01-01')],
                       [('A', 'f1', '2015-01-01', '2015-02-01', '10')],
                       [('A', 'f1', '2015-01-01', '2015-01-09'), ('A', 'f1', '2015-01-01', '2015-01-05')])
        assert pairs.loc[0, 'admsn_asmt_date'] == ts('2015-01-05')


class TestEntryEpisodes:

    def test_transitive_overlap_merges_pairs(self, no_deaths):
        pairs = _pairs([('A', 'f1', '2015-01-01'), ('A', 'f2', '2015-01-05'), ('A', 'f1', '2015-01-20')],
                       [('A', 'f1', '2015-01-01', '2015-01-10', '10'),
                        ('A', 'f2', '2015-01-05', '2015-02-01', '11'),
                        ('A', 'f1', '2015-01-20', '2015-01-25', '10')])
        episodes = build_entry_episodes(pairs, no_deaths)
        assert len(episodes) == 1
        row = episodes.iloc[0]
        assert row['entry_date'] == ts('2015-01-01')
        assert row['discharge_date'] == ts('2015-02-01')
        ## attributes come from the pair with the latest discharge
        assert row['discharge_type'] == '11'
        assert row['fac_state_id'] == 'f2'
        assert row['death_error'] == 0
        assert list(episodes.columns) == EPISODE_COLS

    def test_latest_discharge_tie_prefers_return_not_anticipated(self, no_deaths):
        pairs = _pairs([('A', 'f1', '2015-01-01'), ('A', 'f2', '2015-01-10')],
                       [('A', 'f1', '2015-01-01', '2015-02-01', '11'),
                        ('A', 'f2', '2015-01-10', '2015-02-01', '10')])
        episodes = build_entry_episodes(pairs, no_deaths)
        assert episodes['discharge_type'].tolist() == ['10']
        assert episodes['return_anticipated'].tolist() == [RETURN_NOT_ANTICIPATED]

    def test_episodes_do_not_overlap(self, no_deaths):
        pairs = _pairs([('A', 'f1', '2015-01-01'), ('A', 'f1', '2015-02-01'), ('A', 'f1', '2015-03-01'),
                        ('B', 'f3', '2015-01-01')],
                       [('A', 'f1', '2015-01-01', '2015-01-31', '11'),
                        ('A', 'f1', '2015-02-01', '2015-03-01', '10'),
                        ('A', 'f1', '2015-03-01', '2015-03-15', '10')])
        episodes = build_entry_episodes(pairs, no_deaths)
        a = episodes[episodes['BENE_ID'] == 'A']
        ## a discharge and an entry on the same day overlap, the next day does not
        assert a['entry_date'].tolist() == [ts('2015-01-01'), ts('2015-02-01')]
        assert a['discharge_date'].tolist() == [ts('2015-01-31'), ts('2015-03-15')]
        assert (a['entry_date'].iloc[1:].to_numpy() > a['discharge_date'].iloc[:-1].to_numpy()).all()
        assert episodes['nh_episode_id'].is_unique

        b = episodes[episodes['BENE_ID'] == 'B'].iloc[0]
        assert b['no_discharge'] == 1
        assert b['discharge_date'] == STUDY_END

    def test_death_truncates_episode(self):
        pairs = _pairs([('A', 'f1', '2015-01-01')], [('A', 'f1', '2015-01-01', '2015-02-01', '11')])
        episodes = build_entry_episodes(pairs, _deaths([('A', '2015-01-15')]))
        row = episodes.iloc[0]
        assert row['discharge_date'] == ts('2015-01-15')
        assert row['death_error'] == 1
        assert row['death_match'] == 1
        assert row['return_anticipated'] == RETURN_NOT_ANTICIPATED

    def test_death_on_discharge_date_matches_without_error(self):
        pairs = _pairs([('A', 'f1', '2015-01-01')], [('A', 'f1', '2015-01-01', '2015-02-01', '10')])
        episodes = build_entry_episodes(pairs, _deaths([('A', '2015-02-01')]))
        assert episodes['death_error'].tolist() == [0]
        assert episodes['death_match'].tolist() == [1]

    def test_zero_length_and_post_death_episodes_are_dropped(self):
        pairs = _pairs([('A', 'f1', '2015-01-01'), ('B', 'f1', '2015-03-01')],
                       [('A', 'f1', '2015-01-01', '2015-02-01', '10'),
                        ('B', 'f1', '2015-03-01', '2015-04-01', '10')])
        ## A died on the day of entry; B died before entering
        episodes = build_entry_episodes(pairs, _deaths([('A', '2015-01-01'), ('B', '2015-02-01')]))
        assert len(episodes) == 0


class TestAdmissionEpisodes:

    def test_return_within_window_merges_stays(self, no_deaths):
        entry = _entry_episodes([('A', '2015-01-01', '2015-01-31', RETURN_ANTICIPATED, '2015-01-03'),
                                 ('A', '2015-02-15', '2015-03-31', RETURN_NOT_ANTICIPATED, None),
                                 ('A', '2015-04-10', '2015-04-20', RETURN_NOT_ANTICIPATED, '2015-04-12')])
        episodes = build_admission_episodes(entry, no_deaths)
        assert episodes['entry_date'].tolist() == [ts('2015-01-01'), ts('2015-04-10')]
        assert episodes['discharge_date'].tolist() == [ts('2015-03-31'), ts('2015-04-20')]
        assert episodes['discharge_type'].tolist() == ['10', '10']
        assert episodes['admsn_asmt_date'].tolist() == [ts('2015-01-03'), ts('2015-04-12')]
        assert list(episodes.columns) == EPISODE_COLS

    def test_return_after_window_starts_new_admission(self, no_deaths):
        entry = _entry_episodes([('A', '2015-01-01', '2015-01-31', RETURN_ANTICIPATED, '2015-01-02'),
                                 ('A', '2015-03-15', '2015-03-31', RETURN_NOT_ANTICIPATED, '2015-03-16')])
        episodes = build_admission_episodes(entry, no_deaths)
        assert len(episodes) == 2

    def test_return_on_last_day_of_window_merges(self, no_deaths):
        entry = _entry_episodes([('A', '2015-01-01', '2015-01-31', RETURN_ANTICIPATED, '2015-01-02'),
                                 ('A', '2015-03-02', '2015-03-31', RETURN_NOT_ANTICIPATED, None)])
        episodes = build_admission_episodes(entry, no_deaths)
        assert episodes['entry_date'].tolist() == [ts('2015-01-01')]
        assert episodes['discharge_date'].tolist() == [ts('2015-03-31')]

    def test_stays_before_first_admission_assessment_are_dropped(self, no_deaths):
        entry = _entry_episodes([('B', '2015-01-01', '2015-01-10', RETURN_NOT_ANTICIPATED, None),
                                 ('B', '2015-02-01', '2015-02-20', RETURN_NOT_ANTICIPATED, '2015-02-02'),
                                 ('C', '2015-01-01', '2015-01-31', RETURN_ANTICIPATED, None),
                                 ('C', '2015-02-05', '2015-02-28', RETURN_NOT_ANTICIPATED, '2015-02-06')])
        episodes = build_admission_episodes(entry, no_deaths)
        assert episodes['BENE_ID'].tolist() == ['B', 'C']
        assert episodes['entry_date'].tolist() == [ts('2015-02-01'), ts('2015-02-05')]
        assert episodes['discharge_date'].tolist() == [ts('2015-02-20'), ts('2015-02-28')]

    def test_admission_episodes_contain_entry_episodes(self, no_deaths):
        pairs = _pairs([('A', 'f1', '2015-01-01'), ('A', 'f1', '2015-02-10'), ('A', 'f1', '2015-06-01')],
                       [('A', 'f1', '2015-01-01', '2015-02-01', '11'),
                        ('A', 'f1', '2015-02-10', '2015-03-01', '10'),
                        ('A', 'f1', '2015-06-01', '2015-06-30', '10')],
                       [('A', 'f1', '2015-01-01', '2015-01-04'), ('A', 'f1', '2015-06-01', '2015-06-05')])
        entry = build_entry_episodes(pairs, no_deaths)
        admission = build_admission_episodes(entry, no_deaths)
        assert len(admission) == 2
        for _, row in admission.iterrows():
            inside = entry[(entry['BENE_ID'] == row['BENE_ID']) &
                           (entry['entry_date'] >= row['entry_date']) &
                           (entry['discharge_date'] <= row['discharge_date'])]
            assert len(inside) >= 1
            assert inside['entry_date'].min() == row['entry_date']
            assert inside['discharge_date'].max() == row['discharge_date']

    def test_death_truncates_admission_episode(self):
        entry = _entry_episodes([('A', '2015-01-01', '2015-01-31', RETURN_ANTICIPATED, '2015-01-02'),
                                 ('A', '2015-02-10', '2015-03-31', RETURN_NOT_ANTICIPATED, None)])
        episodes = build_admission_episodes(entry, _deaths([('A', '2015-03-01')]))
        assert episodes['discharge_date'].tolist() == [ts('2015-03-01')]
        assert episodes['death_error'].tolist() == [1]
