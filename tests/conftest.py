import os

import pytest
import xdg.BaseDirectory


DESKTOP_FMT = '''[Desktop Entry]
Type=Application
Name={name}
Exec={exe}
MimeType={mimetypes};
'''



def write_desktop(app_dir, app_id, exe, mimetypes=('text/plain',)):
  path = os.path.join(str(app_dir), app_id + '.desktop')
  os.makedirs(os.path.dirname(path), exist_ok=True)
  with open(path, 'w') as f:
    f.write(DESKTOP_FMT.format(name=app_id, exe=exe, mimetypes=';'.join(mimetypes)))
  return path



@pytest.fixture
def xdg_dirs(tmp_path, monkeypatch):
  '''
  Point pyxdg at a user and a system data directory and a config directory
  under tmp_path. Returns (user applications dir, system applications dir).
  '''
  data_home = tmp_path / 'home' / 'share'
  data_sys = tmp_path / 'usr' / 'share'
  config_home = tmp_path / 'home' / 'config'
  for d in (data_home, data_sys):
    (d / 'applications').mkdir(parents=True)
  config_home.mkdir(parents=True)
  monkeypatch.setattr(xdg.BaseDirectory, 'xdg_data_home', str(data_home))
  monkeypatch.setattr(xdg.BaseDirectory, 'xdg_data_dirs', [str(data_home), str(data_sys)])
  monkeypatch.setattr(xdg.BaseDirectory, 'xdg_config_home', str(config_home))
  return data_home / 'applications', data_sys / 'applications'
