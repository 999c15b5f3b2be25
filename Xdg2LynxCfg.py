#!/usr/bin/env python3
# -*- coding: utf-8 -*-

# Copyright (C) 2024  The Remph
#
# This program is free software: you can redistribute it and/or
# modify it under the terms of the GNU General Public License
# as published by the Free Software Foundation, either version 3
# of the License, or (at your option) any later version.
#
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

'''
Convert XDG desktop entries to VIEWER lines for lynx.cfg.

The input is one or more mimeinfo.cache files as generated by
update-desktop-database:

    http://standards.freedesktop.org/mime-apps-spec/mime-apps-spec-latest.html
    http://standards.freedesktop.org/desktop-entry-spec/desktop-entry-spec-latest.html

Each record lists the desktop files that can open a MIME-type. The list is
reordered by the user's preference directives, the first desktop file is
resolved to a command line and a line of the form

    VIEWER:<type>/<subtype>:<command>

is printed for lynx.

Internally xdg2lynxcfg uses pyxdg to find mimeinfo.cache and desktop files:

    http://pyxdg.readthedocs.org/en/latest/index.html

'''

import argparse
import collections
import logging
import os
import re
import shlex
import sys

import xdg.BaseDirectory
import xdg.DesktopEntry



################################### Globals ####################################

NAME = 'xdg2lynxcfg'
VERSION = '2024.06.01.00.00.00'
DEFAULT_ARGUMENTS_FILE = 'default_arguments.txt'

# Files and paths
APP_DIR = 'applications'
MIMEINFO_CACHE_FILE = 'mimeinfo.cache'
DESKTOP_EXTENSION = '.desktop'
STDIN_PATH = '-'

# mimeinfo.cache
MIME_CACHE_HEADER = '[MIME Cache]'
MIME_CACHE_SEPARATOR = ';'

# lynx.cfg
VIEWER_FMT = 'VIEWER:{}/{}:{}'
LYNX_PLACEHOLDER = '%s'
OPTION_TERMINATOR = '--'

# Desktop entry field codes, e.g. %f, %U, %i.
FIELD_CODE_REGEX = re.compile(r'%[A-Za-z]')
# An option terminator that is already a separate word.
OPTION_TERMINATOR_REGEX = re.compile(r'\s--\s')
# The first placeholder that is a separate word.
SEPARATE_PLACEHOLDER_REGEX = re.compile(r'(\s)%s')

# Preference directives
MODE_ADD = '+'
MODE_REMOVE = '-'
PATTERN_SEPARATOR = ':'
PATTERN_WILDCARD = '*'

# Exec override directives
OVERRIDE_SEPARATOR = '='



################################## Exceptions ##################################

class Xdg2LynxCfgError(Exception):
  '''
  Parent class of all errors that should end the program.
  '''
  pass



class DirectiveError(Xdg2LynxCfgError, ValueError):
  '''
  A directive that is neither a preference nor an exec override.
  '''
  def __init__(self, directive):
    self.directive = directive
    super().__init__('cannot parse directive [{}]'.format(directive))



class InputError(Xdg2LynxCfgError):
  '''
  No usable input file.
  '''
  pass



############################### Config Functions ###############################

def default_arguments_path():
  '''
  The path to a plaintext file containing shell-parsable arguments to add to
  xdg2lynxcfg before argument parsing. This is the place for standing
  directives.
  '''
  return os.path.join(
    xdg.BaseDirectory.xdg_config_home,
    NAME,
    DEFAULT_ARGUMENTS_FILE
  )



def default_arguments():
  '''
  Load default arguments from default_arguments_path().
  '''
  path = default_arguments_path()
  logging.debug('loading arguments from {}'.format(path))
  try:
    with open(path, 'r') as f:
      return shlex.split(f.readline())
  except FileNotFoundError:
    return None



################################## MIME-types ##################################

MimeTypePattern = collections.namedtuple(
  'MimeTypePattern',
  ('type_name', 'subtype_name')
)
MimeTypePattern.__doc__ = '''
A MIME-type pattern. None in either field matches anything.
'''

MATCH_ALL = MimeTypePattern(None, None)



def is_mime_word(word):
  '''
  Check that the word is a non-empty run of letters, digits, underscores and
  hyphens.
  '''
  return bool(word) and all(c.isalnum() or c in '_-' for c in word)



def is_mime_subtype(subtype):
  '''
  Check a subtype of the form [<tree>.]*<name>[+<suffix>]*, e.g.
  "vnd.ms-excel" or "svg+xml".
  '''
  name, *suffixes = subtype.split('+')
  return all(is_mime_word(w) for w in name.split('.')) \
  and all(is_mime_word(s) for s in suffixes)



def parse_mimetype_pattern(mimetype, wildcards=True):
  '''
  Parse a string such as "image/gif", "image/", "/gif" or "/" into a
  MimeTypePattern. An empty side, or "*" if wildcards is True, becomes None.

  Returns None if the string is not a MIME-type pattern.
  '''
  try:
    type_name, subtype_name = mimetype.split('/')
  except ValueError:
    return None

  if not type_name or (wildcards and type_name == PATTERN_WILDCARD):
    type_name = None
  elif not is_mime_word(type_name):
    return None

  if not subtype_name or (wildcards and subtype_name == PATTERN_WILDCARD):
    subtype_name = None
  elif not is_mime_subtype(subtype_name):
    return None

  return MimeTypePattern(type_name, subtype_name)



def parse_mimetype(mimetype):
  '''
  Parse a concrete MIME-type into a (type, subtype) tuple. Both sides are
  required and wildcards are not accepted.

  Returns None if the string is not a MIME-type.
  '''
  pattern = parse_mimetype_pattern(mimetype, wildcards=False)
  if pattern is None or None in pattern:
    return None
  return pattern



def mimetype_matches(pattern, type_name, subtype_name):
  '''
  Check if a MIME-type pattern matches the given type and subtype.
  '''
  return (pattern.type_name is None or pattern.type_name == type_name) \
  and (pattern.subtype_name is None or pattern.subtype_name == subtype_name)



################################# Directives ###################################

PreferenceRule = collections.namedtuple(
  'PreferenceRule',
  ('pattern', 'app_id', 'mode', 'forced')
)



def parse_preference(directive):
  '''
  Parse a preference directive of the form

      [<type>[/<subtype>]:]<app>{+|++|-|--}

  Returns a PreferenceRule, or None if the directive is not a preference.
  '''
  if not directive:
    return None
  mode = directive[-1]
  if mode not in (MODE_ADD, MODE_REMOVE):
    return None

  body = directive[:-1]
  forced = body.endswith(mode)
  if forced:
    body = body[:-1]
  # "+-" and "-+" are neither.
  elif body.endswith(MODE_ADD) or body.endswith(MODE_REMOVE):
    return None

  pattern = MATCH_ALL
  prefix, sep, app_id = body.partition(PATTERN_SEPARATOR)
  if sep:
    parsed_pattern = parse_mimetype_pattern(prefix)
    if parsed_pattern is None:
      app_id = body
    else:
      pattern = parsed_pattern
  else:
    app_id = body

  if not app_id:
    return None
  return PreferenceRule(pattern, app_id, mode, forced)



def parse_exec_override(directive):
  '''
  Parse an exec override of the form <app>=<command>.

  Returns an (app, command) tuple, or None if either side is empty.
  '''
  app_id, _, exe = directive.partition(OVERRIDE_SEPARATOR)
  if not app_id or not exe:
    return None
  if LYNX_PLACEHOLDER not in exe:
    logging.warning('missing {}: [{}]'.format(LYNX_PLACEHOLDER, directive))
  return app_id, exe



def apply_preference_rule(rule, candidates):
  '''
  Apply a single preference rule to a list of candidates in place.
  '''
  found = rule.app_id in candidates
  candidates[:] = [c for c in candidates if c != rule.app_id]

  if rule.mode == MODE_ADD:
    # Forced additions are unconditional. Otherwise the application is only
    # promoted if it was already a candidate.
    if rule.forced or found:
      candidates.insert(0, rule.app_id)
  else:
    # Forced removals are final. Otherwise this is a demotion.
    if not rule.forced and found:
      candidates.append(rule.app_id)
  return candidates



################################ Desktop files #################################

def strip_desktop_extension(name):
  '''
  Remove the desktop extension if it is present.
  '''
  if name.endswith(DESKTOP_EXTENSION):
    return name[:-len(DESKTOP_EXTENSION)]
  return name



def desktop_file_paths(app_id):
  '''
  Iterate over relative paths under the applications directory that may hold
  the desktop file. Prefixed desktop file IDs such as "kde-foo" may also be
  stored as "kde/foo.desktop".
  '''
  yield app_id + DESKTOP_EXTENSION
  for i in range(1, app_id.count('-') + 1):
    yield app_id.replace('-', os.sep, i) + DESKTOP_EXTENSION



def find_desktop_file(app_id):
  '''
  Find the path to the desktop file with the highest precedence for the given
  ID in the XDG data directories. Directory precedence beats the form of the
  path.
  '''
  relpaths = list(desktop_file_paths(app_id))
  for dpath in xdg.BaseDirectory.xdg_data_dirs:
    for relpath in relpaths:
      path = os.path.join(dpath, APP_DIR, relpath)
      if os.path.exists(path):
        logging.debug('found {}'.format(path))
        return path
  return None



def desktop_entry(path):
  '''
  Load a desktop entry. None is returned if it cannot be parsed.
  '''
  de = xdg.DesktopEntry.DesktopEntry()
  de.filename = path

  logging.debug('parsing {}'.format(path))
  try:
    de.parse(path)
  except xdg.DesktopEntry.ParsingError as e:
    logging.debug('error loading {}: {}'.format(path, e))
    return None
  return de



def desktop_exec(app_id):
  '''
  Get the raw Exec field of the desktop file with the given ID. An empty string
  is returned if there is no such desktop file or it cannot be parsed.
  '''
  path = find_desktop_file(app_id)
  if path is None:
    logging.warning('no desktop file for {}'.format(app_id))
    return ''
  de = desktop_entry(path)
  if de is None:
    logging.warning('failed to load {}'.format(path))
    return ''
  return de.getExec()



def normalize_exec(exe):
  '''
  Convert a desktop entry Exec field to a lynx command. All field codes are
  replaced by lynx's single placeholder and an option terminator is inserted
  before the first separate placeholder unless the command already has one.
  '''
  exe = FIELD_CODE_REGEX.sub(LYNX_PLACEHOLDER, exe)
  if not OPTION_TERMINATOR_REGEX.search(exe):
    exe = SEPARATE_PLACEHOLDER_REGEX.sub(
      r'\1{}\1{}'.format(OPTION_TERMINATOR, LYNX_PLACEHOLDER),
      exe,
      count=1
    )
  return exe



############################## DesktopEntryCache ###############################

class DesktopEntryCache(object):
  '''
  Normalized Exec fields indexed by desktop file ID. Entries are loaded on first
  access and kept for the rest of the run.
  '''
  def __init__(self, loader=desktop_exec):
    self.loader = loader
    self.commands = dict()



  def __contains__(self, app_id):
    return app_id in self.commands



  def __getitem__(self, app_id):
    try:
      return self.commands[app_id]
    except KeyError:
      logging.debug('looking up {}'.format(app_id))
      cmd = normalize_exec(self.loader(app_id) or '')
      self.commands[app_id] = cmd
      return cmd



############################### mimeinfo.cache #################################

def parse_mimeinfo_record(line):
  '''
  Parse a mimeinfo.cache record of the form

      <type>/<subtype>=<app>.desktop;<app>.desktop;...;

  Returns a (type, subtype, candidates) tuple with the desktop extension
  removed from the candidates, or None if the line is malformed.
  '''
  mimetype, sep, desktops = line.partition('=')
  if not sep:
    return None
  parsed = parse_mimetype(mimetype)
  if parsed is None:
    return None
  if not desktops.endswith(MIME_CACHE_SEPARATOR):
    return None

  candidates = list()
  for d in desktops[:-1].split(MIME_CACHE_SEPARATOR):
    app_id = strip_desktop_extension(d)
    if not app_id or app_id == d:
      return None
    candidates.append(app_id)
  return parsed.type_name, parsed.subtype_name, candidates



def viewer_line(type_name, subtype_name, cmd):
  '''
  Format a lynx.cfg VIEWER line.
  '''
  return VIEWER_FMT.format(type_name, subtype_name, cmd)



def default_input_paths():
  '''
  Find all mimeinfo.cache files in the XDG data directories. They are returned
  in reverse order of precedence so that the most authoritative records come
  last and override earlier ones when lynx reads the configuration.
  '''
  paths = list(xdg.BaseDirectory.load_data_paths(APP_DIR, MIMEINFO_CACHE_FILE))
  paths.reverse()
  return paths



def iterate_input_lines(paths, stdin=None):
  '''
  Iterate over the lines of all input files in order, as if they had been
  concatenated. The path "-" is standard input. Files are opened one at a time.
  '''
  for path in paths:
    if path == STDIN_PATH:
      logging.debug('reading standard input')
      if stdin is None:
        stdin = sys.stdin
        stdin.reconfigure(errors='replace')
      yield from stdin
      continue
    try:
      # Undecodable bytes end up in malformed records rather than ending the run.
      f = open(path, 'r', errors='replace')
    except OSError as e:
      raise InputError('failed to open {}: {}'.format(path, e)) from e
    with f:
      logging.debug('loading {}'.format(path))
      yield from f



################################# Xdg2LynxCfg ##################################

class Xdg2LynxCfg(object):
  '''
  Hold the preference rules, exec overrides and desktop entry cache for a run
  and convert mimeinfo.cache records to lynx.cfg lines.
  '''
  def __init__(self, directives=None, exec_loader=desktop_exec):
    self.preferences = list()
    self.exec_overrides = dict()
    self.desktop_commands = DesktopEntryCache(loader=exec_loader)
    if directives:
      for d in directives:
        self.add_directive(d)



  def add_preference(self, rule):
    logging.debug('preference: {}'.format(rule))
    self.preferences.append(rule)



  def add_exec_override(self, app_id, exe):
    logging.debug('exec override: {}={}'.format(app_id, exe))
    self.exec_overrides[app_id] = exe



  def add_directive(self, directive):
    '''
    Add a preference or exec override. DirectiveError is raised if the
    directive is neither.
    '''
    rule = parse_preference(directive)
    if rule is not None:
      self.add_preference(rule)
      return
    override = parse_exec_override(directive)
    if override is not None:
      self.add_exec_override(*override)
      return
    raise DirectiveError(directive)



  def shuffle_candidates(self, type_name, subtype_name, candidates):
    '''
    Reorder the candidates for a MIME-type by applying all matching preference
    rules in the order in which they were given. A new list is returned.
    '''
    candidates = list(candidates)
    changed = len(candidates) == 1
    for rule in self.preferences:
      if mimetype_matches(rule.pattern, type_name, subtype_name):
        apply_preference_rule(rule, candidates)
        changed = True
    if not changed:
      logging.warning('options for {}/{}:\t{}'.format(
        type_name, subtype_name, ' '.join(candidates)
      ))
    return candidates



  def resolve_exec(self, app_id):
    '''
    Get the lynx command for a desktop file ID. Overrides are returned as given.
    '''
    try:
      return self.exec_overrides[app_id]
    except KeyError:
      return self.desktop_commands[app_id]



  def process_record(self, type_name, subtype_name, candidates):
    '''
    Convert a parsed record to a VIEWER line.
    '''
    candidates = self.shuffle_candidates(type_name, subtype_name, candidates)
    if candidates:
      cmd = self.resolve_exec(candidates[0])
    else:
      logging.warning('no options left for {}/{}'.format(type_name, subtype_name))
      cmd = ''
    return viewer_line(type_name, subtype_name, cmd)



  def process_line(self, line, lineno=None):
    '''
    Convert a single input line. None is returned for headers, blank lines and
    malformed records.
    '''
    line = line.rstrip('\n')
    if line == MIME_CACHE_HEADER or not line.strip():
      return None
    record = parse_mimeinfo_record(line)
    if record is None:
      if lineno is None:
        logging.warning('malformed record: {}'.format(line))
      else:
        logging.warning('malformed record on line {}: {}'.format(lineno, line))
      return None
    return self.process_record(*record)



  def convert(self, lines):
    '''
    Iterate over VIEWER lines for the given input lines. Headers may appear
    anywhere, e.g. when several cache files are concatenated, but the first
    line is expected to be one.
    '''
    for lineno, line in enumerate(lines, 1):
      if lineno == 1 and line.rstrip('\n') != MIME_CACHE_HEADER:
        logging.warning('missing mimeinfo header')
      out = self.process_line(line, lineno=lineno)
      if out is not None:
        yield out



##################################### Help #####################################

directive_help = '''
directives:
  <app>=<command>
    Override the Exec field of <app>.desktop. The command is passed straight
    into lynx.cfg so it must contain "%%s", which should probably be preceded
    by "--".

  [<type>[/<subtype>]:]<app>{+|++|-|--}
    Prefer (+) or avoid (-) <app> for the MIME-type. "++" always uses <app>
    even if it is not associated with the MIME-type and "--" never uses it.
    Without a MIME-type the rule applies to all MIME-types. An omitted or "*"
    type or subtype matches anything. Rules are applied in the given order.

example:
  %(prog)s image/gif:mpv++ ida-- image/:imv-dir+ 'mpv=mpv -- %%s'
'''



def get_argparser():
  parser = argparse.ArgumentParser(
    prog=NAME,
    description='Convert XDG desktop entries to lynx.cfg VIEWER lines.',
    usage='%(prog)s [options] [<directive> ...]',
    epilog=directive_help,
    formatter_class=argparse.RawDescriptionHelpFormatter,
  )

  parser.add_argument(
    '-V', '--version', action='version',
    version='%(prog)s {}'.format(VERSION)
  )

  parser.add_argument(
    '-f', '--file', metavar='<filepath>',
    help='Use <filepath> as input. If <filepath> is "-", read from STDIN. Without this, all {}/{} files in the XDG data directories are read.'.format(APP_DIR, MIMEINFO_CACHE_FILE)
  )

  parser.add_argument(
    '--no-def-args', dest='use_default_args', action='store_false',
    help='Omit the default arguments in {}.'.format(default_arguments_path())
  )

  parser.add_argument(
    '--debug', action='store_true',
    help='Enable debugging messages.'
  )

  parser.add_argument('directives', nargs='*', metavar='<directive>')

  return parser



##################################### Main #####################################

def main(args=None, stdout=None, stdin=None):
  if args is None:
    args = sys.argv[1:]
  if stdout is None:
    stdout = sys.stdout
  parser = get_argparser()
  # Directives may follow options, e.g. "-f FILE foo+" after default arguments.
  pargs = parser.parse_intermixed_args(args)

  if pargs.use_default_args:
    extra_args = default_arguments()
    if extra_args:
      logging.debug('prepending arguments: {}'.format(' '.join(shlex.quote(a) for a in extra_args)))
      args = extra_args + list(args)
      pargs = parser.parse_intermixed_args(args)

  try:
    converter = Xdg2LynxCfg(directives=pargs.directives)

    if pargs.file:
      paths = (pargs.file,)
    else:
      paths = default_input_paths()
      if not paths:
        raise InputError('no {} found in the XDG data directories'.format(MIMEINFO_CACHE_FILE))

    for line in converter.convert(iterate_input_lines(paths, stdin=stdin)):
      print(line, file=stdout)
  except Xdg2LynxCfgError as e:
    logging.error(e)
    return 1
  return 0



def run():
  logging.basicConfig(
    format='%(levelname)s: %(message)s',
    level=logging.DEBUG if ('--debug' in sys.argv[1:]) else logging.WARNING
  )
  try:
    sys.exit(main())
  except (KeyboardInterrupt, BrokenPipeError):
    pass



if __name__ == '__main__':
  run()
