from ytmp3.main import ytmp3

ytmp3()
