import logging

import pytest

from Xdg2LynxCfg import (
  MATCH_ALL,
  MODE_ADD,
  MODE_REMOVE,
  DirectiveError,
  MimeTypePattern,
  PreferenceRule,
  Xdg2LynxCfg,
  parse_exec_override,
  parse_preference,
)


@pytest.mark.parametrize('directive, expected', [
  ('mpv+', PreferenceRule(MATCH_ALL, 'mpv', MODE_ADD, False)),
  ('mpv++', PreferenceRule(MATCH_ALL, 'mpv', MODE_ADD, True)),
  ('ida-', PreferenceRule(MATCH_ALL, 'ida', MODE_REMOVE, False)),
  ('ida--', PreferenceRule(MATCH_ALL, 'ida', MODE_REMOVE, True)),
  ('image/gif:mpv++', PreferenceRule(MimeTypePattern('image', 'gif'), 'mpv', MODE_ADD, True)),
  ('image/:imv-dir+', PreferenceRule(MimeTypePattern('image', None), 'imv-dir', MODE_ADD, False)),
  ('/gif:feh-', PreferenceRule(MimeTypePattern(None, 'gif'), 'feh', MODE_REMOVE, False)),
  ('*/*:b-', PreferenceRule(MATCH_ALL, 'b', MODE_REMOVE, False)),
  ('/:b--', PreferenceRule(MATCH_ALL, 'b', MODE_REMOVE, True)),
  ('org.gnome.Evince+', PreferenceRule(MATCH_ALL, 'org.gnome.Evince', MODE_ADD, False)),
])
def test_parse_preference(directive, expected):
  assert parse_preference(directive) == expected


def test_prefix_without_slash_is_part_of_the_app():
  assert parse_preference('image:mpv+') == PreferenceRule(MATCH_ALL, 'image:mpv', MODE_ADD, False)


def test_extra_operator_characters_stay_in_the_app():
  assert parse_preference('foo---') == PreferenceRule(MATCH_ALL, 'foo-', MODE_REMOVE, True)


@pytest.mark.parametrize('directive', [
  '',
  'mpv',
  'mpv+-',
  'mpv-+',
  '+',
  '--',
  'image/gif:+',
  'mpv=mpv -- %s',
])
def test_not_a_preference(directive):
  assert parse_preference(directive) is None


def test_parse_exec_override():
  assert parse_exec_override('mpv=mpv -- %s') == ('mpv', 'mpv -- %s')


def test_exec_override_splits_on_first_separator():
  assert parse_exec_override('mpv=mpv --mute=yes -- %s') == ('mpv', 'mpv --mute=yes -- %s')


@pytest.mark.parametrize('directive', ['mpv', 'mpv=', '=mpv %s', ''])
def test_not_an_exec_override(directive):
  assert parse_exec_override(directive) is None


def test_exec_override_without_placeholder_warns(caplog):
  with caplog.at_level(logging.WARNING):
    assert parse_exec_override('mpv=mpv') == ('mpv', 'mpv')
  assert 'missing %s' in caplog.text


def test_directives_are_kept_in_order():
  x = Xdg2LynxCfg(directives=['a+', 'image/:b--', 'a-'])
  assert [r.app_id for r in x.preferences] == ['a', 'b', 'a']
  assert [r.mode for r in x.preferences] == [MODE_ADD, MODE_REMOVE, MODE_REMOVE]


def test_later_exec_override_replaces_earlier():
  x = Xdg2LynxCfg(directives=['mpv=mpv %s', 'mpv=mpv -- %s'])
  assert x.exec_overrides == {'mpv': 'mpv -- %s'}


@pytest.mark.parametrize('directive', ['mpv', 'mpv+-', '=', 'image/gif:'])
def test_unparseable_directive(directive):
  with pytest.raises(DirectiveError) as excinfo:
    Xdg2LynxCfg(directives=[directive])
  assert excinfo.value.directive == directive
